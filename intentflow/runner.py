"""
Flow runner - executes every step of an intent spec in order against one page
"""

import asyncio
import time
from typing import Callable, Dict, List, Optional

from playwright.async_api import Page

from .config import NAVIGATION_TIMEOUT, ExecutionSettings
from .executor import StepExecutor
from .logger import logger
from .models import ExecutionMethod, FlowProgress, FlowResult, IntentSpec, StepResult
from .screenshot import ScreenshotCapture

ProgressCallback = Callable[[FlowProgress], None]


def compute_stats(results: List[StepResult], total_steps: int) -> Dict[str, float]:
    """Per-method usage and outcome counts for a run"""
    executed = [r for r in results if not r.skipped]
    completed = [r for r in executed if r.success]

    def usage(method: ExecutionMethod) -> int:
        return sum(1 for r in executed if r.execution_method == method)

    return {
        "totalSteps": total_steps,
        "completedSteps": len(completed),
        "skippedSteps": len(results) - len(executed),
        "failedSteps": len(executed) - len(completed),
        "snippetUsage": usage(ExecutionMethod.SNIPPET),
        "aiUsage": usage(ExecutionMethod.AI),
        "hybridUsage": usage(ExecutionMethod.HYBRID),
        "fallbackUsed": sum(1 for r in executed if r.fallback_used),
        "snippetSuccess": sum(
            1 for r in completed if r.execution_method == ExecutionMethod.SNIPPET and not r.fallback_used
        ),
        # snippet failed outright, or a snippet-first step had to fall back to AI
        "snippetFailure": sum(
            1 for r in executed
            if (not r.success and r.execution_method == ExecutionMethod.SNIPPET)
            or (r.fallback_used and r.execution_method == ExecutionMethod.AI)
        ),
        "successRate": round(len(completed) / len(executed), 3) if executed else 0.0,
    }


def recommendations_for(stats: Dict[str, float]) -> List[str]:
    """Suggestions for improving a flow, based on how its last run went"""
    recommendations = []
    executed = stats["completedSteps"] + stats["failedSteps"]
    ran = executed + stats["skippedSteps"]

    snippet_attempts = stats["snippetSuccess"] + stats["snippetFailure"]
    if snippet_attempts and stats["snippetSuccess"] / snippet_attempts < 0.7:
        recommendations.append("Consider updating selectors - snippet success rate is below 70%")

    if executed and stats["aiUsage"] / executed > 0.3:
        recommendations.append(
            "High AI usage detected (>30%). Consider improving snippet selectors for better performance"
        )

    if ran and stats["skippedSteps"] / ran > 0.2:
        recommendations.append(
            "Many steps are being skipped (>20%). Flow might be optimized by removing redundant steps"
        )

    if not recommendations:
        recommendations.append("Flow is performing optimally with snippet-first strategy")
    return recommendations


class FlowRunner:
    """Runs intent specs against a page owned by the caller"""

    def __init__(self, page: Page, ai=None, executor: Optional[StepExecutor] = None,
                 settings: Optional[ExecutionSettings] = None,
                 screenshots: Optional[ScreenshotCapture] = None,
                 on_progress: Optional[ProgressCallback] = None):
        self.page = page
        self.ai = ai
        self.settings = settings or ExecutionSettings()
        self.executor = executor or StepExecutor(page, ai, settings=self.settings)
        self.screenshots = screenshots
        if self.screenshots is None and self.settings.capture_screenshots:
            self.screenshots = ScreenshotCapture()
        self.on_progress = on_progress

    async def execute_flow(self, spec: IntentSpec, bindings: Optional[Dict[str, str]] = None) -> FlowResult:
        """
        Execute all steps of an intent spec

        Steps run strictly in order; the flow halts at the first failed step
        unless that step sets continueOnFailure. Never raises.

        Args:
            spec: Intent spec to run
            bindings: Values for the spec's {{PARAM}} tokens

        Returns:
            FlowResult with success == (no errors recorded)
        """
        started = time.monotonic()
        bindings = bindings or {}
        total = len(spec.steps)
        result = FlowResult(success=False)
        if self.screenshots is not None:
            self.screenshots.reset()

        logger.info(f"Running flow: {spec.name} ({total} steps)", "🚀")

        try:
            result.navigation_error = await self._open_start_url(spec.url)

            for index, step in enumerate(spec.steps):
                logger.step(f"Step {index + 1}/{total}: {step.name}")
                self._progress(index, total, step.name, "executing", step.ai_instruction)

                step_result = await self.executor.execute_step(step, bindings)
                result.results.append(step_result)

                if step_result.skipped:
                    self._progress(index, total, step.name, "skipped", step_result.skip_reason or "")
                elif step_result.success:
                    self._progress(index, total, step.name, "completed", "Step completed")
                else:
                    result.errors.append({
                        "stepIndex": index,
                        "stepName": step.name,
                        "executionMethod": step_result.execution_method.value
                        if step_result.execution_method else None,
                        "error": step_result.error,
                    })
                    self._progress(index, total, step.name, "failed", step_result.error or "")
                    await self._capture(result, f"failed {step.name}", "failure")

                    if not step.continue_on_failure:
                        logger.error(f"Step \"{step.name}\" failed, stopping flow: {step_result.error}")
                        break
                    logger.warning(f"Step \"{step.name}\" failed, continuing (continueOnFailure)")

                if index < total - 1 and self.settings.step_delay > 0:
                    await asyncio.sleep(self.settings.step_delay)

            if spec.success_check:
                result.success_check = await self.evaluate_success_check(spec.success_check)
            if spec.success_screenshot:
                await self._capture(result, spec.success_screenshot, "final")
        except Exception as e:
            logger.error(f"Flow execution failed: {e}")
            result.errors.append({"stepIndex": -1, "stepName": "Flow execution", "error": str(e)})

        result.success = not result.errors
        result.duration = time.monotonic() - started
        result.stats = compute_stats(result.results, total)
        result.recommendations = recommendations_for(result.stats)

        if result.success:
            logger.success(f"Flow \"{spec.name}\" completed in {result.duration:.1f}s")
        else:
            logger.error(f"Flow \"{spec.name}\" failed with {len(result.errors)} error(s)")
        return result

    async def evaluate_success_check(self, check: str) -> Dict[str, object]:
        """Ask the AI whether the final page satisfies the spec's success check (informational)"""
        if self.ai is None:
            return {"check": check, "passed": None, "error": "No AI collaborator configured"}
        try:
            text = await self.page.inner_text("body")
            answer = await self.ai.query(
                f"Does the current page satisfy this success check: {check}",
                f"URL: {self.page.url}\nVisible text:\n{text[:self.settings.state_text_limit]}",
                choices=["yes", "no"],
            )
        except Exception as e:
            logger.warning(f"Success check could not be evaluated: {e}")
            return {"check": check, "passed": None, "error": str(e)}

        passed = str(answer.get("choice")).strip().lower() in ("yes", "true")
        logger.info(f"Success check {'passed' if passed else 'did not pass'}: {check}", "🏁")
        return {
            "check": check,
            "passed": passed,
            "confidence": answer.get("confidence", 0.0),
            "rationale": answer.get("rationale", ""),
        }

    async def _open_start_url(self, url: str) -> Optional[str]:
        if not url:
            return None
        logger.info(f"Opening: {url}", "🌐")
        try:
            await self.page.goto(url, timeout=NAVIGATION_TIMEOUT)
        except Exception as e:
            logger.warning(f"Initial navigation failed, continuing with steps: {e}")
            return str(e)
        return None

    async def _capture(self, result: FlowResult, description: str, capture_type: str):
        if self.screenshots is None:
            return
        shot = await self.screenshots.capture(self.page, description, capture_type)
        if shot:
            result.screenshots.append(shot)

    def _progress(self, index: int, total: int, step_name: str, status: str, message: str):
        if self.on_progress is None:
            return
        try:
            self.on_progress(FlowProgress(index + 1, total, step_name, status, message))
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")
