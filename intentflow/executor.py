"""
Step executor - runs one intent step with retries, fallback and skip handling
"""

import time
from typing import Any, Dict, Optional, Tuple

from playwright.async_api import Page

from .actions import ActionInterpreter, render, retarget
from .bindings import ensure_bound, render_step
from .config import ExecutionSettings
from .errors import AIDelegationFailure, UnboundParameterError
from .logger import logger
from .models import ExecutionMethod, IntentStep, PreFlightAnalysis, StepResult
from .preflight import PreFlightAnalyzer


class StepExecutor:
    """Executes intent steps against one page"""

    def __init__(self, page: Page, ai=None, analyzer: Optional[PreFlightAnalyzer] = None,
                 interpreter: Optional[ActionInterpreter] = None,
                 settings: Optional[ExecutionSettings] = None):
        self.page = page
        self.ai = ai
        self.settings = settings or ExecutionSettings()
        self.analyzer = analyzer or PreFlightAnalyzer(ai, settings=self.settings)
        self.interpreter = interpreter or ActionInterpreter(
            allow_raw=self.settings.allow_raw_snippets,
            timeout=self.settings.step_timeout,
        )

    async def execute_step(self, step: IntentStep, bindings: Optional[Dict[str, str]] = None) -> StepResult:
        """
        Execute a step with a fresh pre-flight analysis per attempt

        The primary method gets 1 + retries attempts; the fallback method is
        tried once after the last attempt fails.

        Returns:
            StepResult (never raises for step-level failures)
        """
        bindings = bindings or {}
        started = time.monotonic()
        rendered = render_step(step, bindings)
        unbound = self._check_bound(rendered, started)
        if unbound:
            return unbound

        attempts = 1 + max(step.retries or 0, 0)
        analysis = None
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            analysis = await self.analyzer.analyze_before_step(self.page, step, bindings)
            if analysis.skip_recommendation.should_skip:
                return self._skipped(rendered, analysis, started, attempt)

            method = analysis.execution_strategy.method
            try:
                data, fragment = await self._run(method, rendered, analysis)
                return self._succeeded(rendered, method, started, attempt, data, fragment)
            except Exception as e:
                last_error = e
                logger.warning(f"{method.value} attempt {attempt}/{attempts} failed: {e}")

        return await self._fall_back(rendered, analysis, last_error, started, attempts)

    async def execute(self, step: IntentStep, analysis: PreFlightAnalysis,
                      bindings: Optional[Dict[str, str]] = None) -> StepResult:
        """Execute a step once against an existing analysis (primary method, then fallback)"""
        started = time.monotonic()
        rendered = render_step(step, bindings or {})
        unbound = self._check_bound(rendered, started)
        if unbound:
            return unbound

        if analysis.skip_recommendation.should_skip:
            return self._skipped(rendered, analysis, started, 1)

        method = analysis.execution_strategy.method
        try:
            data, fragment = await self._run(method, rendered, analysis)
            return self._succeeded(rendered, method, started, 1, data, fragment)
        except Exception as e:
            logger.warning(f"{method.value} failed: {e}")
            return await self._fall_back(rendered, analysis, e, started, 1)

    async def _fall_back(self, step: IntentStep, analysis: PreFlightAnalysis,
                         error: Exception, started: float, attempts: int) -> StepResult:
        method = analysis.execution_strategy.method
        fallback = analysis.execution_strategy.fallback_method
        # hybrid already ends with an AI attempt
        hybrid_reached_ai = method == ExecutionMethod.HYBRID and fallback == ExecutionMethod.AI
        if fallback is None or fallback == method or hybrid_reached_ai:
            return self._failed(step, method, started, attempts, str(error))

        logger.info(f"Falling back to {fallback.value}", "🔄")
        try:
            data, fragment = await self._run(fallback, step, analysis)
        except Exception as e:
            logger.warning(f"Fallback {fallback.value} failed: {e}")
            return self._failed(
                step, fallback, started, attempts + 1,
                f"{method.value} failed: {error}; {fallback.value} fallback failed: {e}",
                fallback_used=True,
            )
        return self._succeeded(step, fallback, started, attempts + 1, data, fragment, fallback_used=True)

    async def _run(self, method: ExecutionMethod, step: IntentStep,
                   analysis: PreFlightAnalysis) -> Tuple[Any, Optional[str]]:
        """Run one method; returns (data, fragment that was executed)"""
        if method == ExecutionMethod.SNIPPET:
            logger.debug(f"Snippet: {step.snippet}")
            data = await self.interpreter.execute(self.page, step.snippet, self._timeout(step))
            return data, step.snippet
        if method == ExecutionMethod.AI:
            return await self._run_ai(step, analysis)
        if method == ExecutionMethod.HYBRID:
            return await self._run_hybrid(step, analysis)
        raise ValueError(f"Unknown execution method: {method}")

    async def _run_hybrid(self, step: IntentStep, analysis: PreFlightAnalysis) -> Tuple[Any, Optional[str]]:
        alternatives = []
        if analysis.target_element:
            alternatives = list(analysis.target_element.alternative_selectors)

        action = self.interpreter.parse(step.snippet)
        candidates = [action] + [retarget(action, selector) for selector in alternatives]
        for candidate in candidates:
            try:
                data = await self.interpreter.run(self.page, candidate, self._timeout(step))
                return data, render(candidate)
            except Exception as e:
                logger.debug(f"Hybrid candidate {render(candidate)} failed: {e}")

        logger.ai("Selectors exhausted, asking AI with alternatives in context")
        return await self._run_ai(step, analysis, {"alternativeSelectors": alternatives})

    async def _run_ai(self, step: IntentStep, analysis: PreFlightAnalysis,
                      extra: Optional[Dict[str, Any]] = None) -> Tuple[Any, Optional[str]]:
        if self.ai is None:
            raise AIDelegationFailure("No AI collaborator configured")

        context = self._ai_context(step, analysis)
        if extra:
            context.update(extra)

        logger.ai(f"AI: {step.ai_instruction}")
        result = await self.ai.act(self.page, step.ai_instruction, context, self._timeout(step))
        return result, (result or {}).get("fragment")

    def _ai_context(self, step: IntentStep, analysis: PreFlightAnalysis) -> Dict[str, Any]:
        context: Dict[str, Any] = {"step": step.name}
        if step.value is not None:
            context["value"] = step.value
        if step.selector:
            context["selector"] = step.selector
        if analysis.target_element:
            context["targetElement"] = analysis.target_element.to_dict()
        if analysis.page_content:
            context["pageContent"] = analysis.page_content.to_dict()
        return context

    def _timeout(self, step: IntentStep) -> int:
        # 0 would mean "no deadline" to Playwright
        return step.timeout if step.timeout else self.settings.step_timeout

    def _check_bound(self, step: IntentStep, started: float) -> Optional[StepResult]:
        try:
            ensure_bound(step)
        except UnboundParameterError as e:
            logger.error(f"{step.name}: {e}")
            return self._failed(step, None, started, 0, str(e))
        return None

    def _skipped(self, step: IntentStep, analysis: PreFlightAnalysis, started: float, attempts: int) -> StepResult:
        skip = analysis.skip_recommendation
        logger.skip(f"Skipped: {skip.reason} (confidence {skip.confidence:.2f})")
        return StepResult(
            step_name=step.name,
            success=True,
            skipped=True,
            skip_reason=skip.reason,
            execution_method=analysis.execution_strategy.method,
            duration=time.monotonic() - started,
            attempts=attempts,
        )

    def _succeeded(self, step: IntentStep, method: ExecutionMethod, started: float, attempts: int,
                   data: Any, fragment: Optional[str], fallback_used: bool = False) -> StepResult:
        logger.success(f"{step.name} ({method.value})")
        return StepResult(
            step_name=step.name,
            success=True,
            execution_method=method,
            duration=time.monotonic() - started,
            data=data if isinstance(data, (dict, list, str, int, float, bool)) else None,
            attempts=attempts,
            fragment=fragment,
            fallback_used=fallback_used,
        )

    def _failed(self, step: IntentStep, method: Optional[ExecutionMethod], started: float, attempts: int,
                error: str, fallback_used: bool = False) -> StepResult:
        return StepResult(
            step_name=step.name,
            success=False,
            execution_method=method,
            duration=time.monotonic() - started,
            error=error,
            attempts=attempts,
            fragment=step.snippet,
            fallback_used=fallback_used,
        )
