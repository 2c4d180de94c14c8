"""
Pre-flight analyzer - inspects the page before each step and decides
whether to skip it and how to execute it
"""

import re
from typing import Dict, Optional

from playwright.async_api import Page

from .actions import Fill, Navigate, Target, parse_fragment
from .bindings import render_step
from .config import ExecutionSettings
from .errors import AnalysisFailure, UnsupportedFragment
from .logger import logger
from .models import (
    ExecutionMethod,
    IntentStep,
    PageContent,
    PageState,
    PreFlightAnalysis,
    SkipRecommendation,
    Strategy,
    TargetElement,
)
from .navigator import extract_interactive_elements
from .prober import ElementProber
from .state_detector import StateDetector

ERROR_KEYWORDS = ("error", "failed", "404", "500", "not found", "unauthorized")
VERIFICATION_NAME = re.compile(r"\b(?:verify|check|validate)\b", re.IGNORECASE)
READY_STATE_SCRIPT = "() => document.readyState"

NAVIGATION_SKIP_CONFIDENCE = 0.9
SKIP_STATE_CONFIDENCE = 0.9
FILLED_SKIP_CONFIDENCE = 0.95
OPTIONAL_MISSING_SKIP_CONFIDENCE = 0.8


def is_verification_step(name: str) -> bool:
    """Whole-word verify/check/validate in the step name ("Verify dashboard", but not "Proceed to checkout")"""
    return bool(VERIFICATION_NAME.search(name or ""))


class PreFlightAnalyzer:
    """Produces a fresh PreFlightAnalysis for a step against the current page"""

    def __init__(self, ai=None, prober: Optional[ElementProber] = None,
                 detector: Optional[StateDetector] = None,
                 settings: Optional[ExecutionSettings] = None):
        self.settings = settings or ExecutionSettings()
        self.prober = prober or ElementProber(ai, max_alternatives=self.settings.max_alternative_selectors)
        self.detector = detector or StateDetector(ai, text_limit=self.settings.state_text_limit)

    async def analyze_before_step(self, page: Page, step: IntentStep,
                                  bindings: Optional[Dict[str, str]] = None) -> PreFlightAnalysis:
        """
        Analyze the page before executing a step

        Never raises: any failure produces the degraded analysis from safe_default().

        Args:
            page: Live page
            step: Step as declared in the intent spec
            bindings: Variable values substituted into the step before probing

        Returns:
            PreFlightAnalysis with page state, target element, skip recommendation and strategy
        """
        try:
            return await self._analyze(page, render_step(step, bindings or {}))
        except Exception as e:
            logger.warning(f"Pre-flight analysis failed for \"{step.name}\": {e}")
            return self.safe_default(page)

    async def _analyze(self, page: Page, step: IntentStep) -> PreFlightAnalysis:
        page_state = await self.snapshot_page(page)

        target = self.prober.extract_target(step.snippet)
        target_element = await self.prober.probe(page, target, step)

        skip = await self.evaluate_skip(page, step, page_state, target, target_element)
        strategy = self.select_strategy(step, target_element, page_state)

        page_content = None
        if not skip.should_skip and ExecutionMethod.AI in (strategy.method, strategy.fallback_method):
            page_content = await self.extract_page_content(page)

        logger.debug(
            f"Pre-flight \"{step.name}\": method={strategy.method.value} "
            f"fallback={strategy.fallback_method.value if strategy.fallback_method else None} "
            f"skip={skip.should_skip} ({strategy.reason})"
        )
        return PreFlightAnalysis(
            page_state=page_state,
            target_element=target_element,
            skip_recommendation=skip,
            execution_strategy=strategy,
            page_content=page_content,
        )

    async def snapshot_page(self, page: Page) -> PageState:
        try:
            url = page.url
            title = await page.title()
            ready_state = await page.evaluate(READY_STATE_SCRIPT)
            text = (await page.inner_text("body")).lower()
        except Exception as e:
            raise AnalysisFailure(f"Could not read page state: {e}") from e

        return PageState(
            url=url,
            title=title,
            ready_state=str(ready_state),
            has_errors=any(keyword in text for keyword in ERROR_KEYWORDS),
        )

    async def evaluate_skip(self, page: Page, step: IntentStep, page_state: PageState,
                            target: Optional[Target],
                            target_element: Optional[TargetElement]) -> SkipRecommendation:
        """First matching skip rule wins"""
        state_skip = await self._check_target_state(page, step)
        if state_skip:
            return state_skip

        action = self._parse(step.snippet)
        if isinstance(action, Navigate) and self._url_satisfied(page_state.url, action.url):
            return SkipRecommendation(True, "Already on target page", NAVIGATION_SKIP_CONFIDENCE)

        for marker in step.skip_navigation_states:
            if marker and marker in page_state.url:
                return SkipRecommendation(
                    True, f"Current URL indicates state already reached: {marker}", SKIP_STATE_CONFIDENCE
                )

        if isinstance(action, Fill) and target_element and target_element.exists:
            current = await self._current_value(page, action.target)
            if current is not None and current == action.value:
                return SkipRecommendation(
                    True, f"Field already contains value: {current}", FILLED_SKIP_CONFIDENCE
                )

        if target_element and not target_element.exists and step.continue_on_failure:
            return SkipRecommendation(
                True, "Target element not found, step marked as optional", OPTIONAL_MISSING_SKIP_CONFIDENCE
            )

        return SkipRecommendation(False, None, 0.0)

    def select_strategy(self, step: IntentStep, target_element: Optional[TargetElement],
                        page_state: PageState) -> Strategy:
        """Fixed-precedence strategy selection, then the step's fallback preference is applied"""
        if isinstance(self._parse(step.snippet), Navigate):
            strategy = Strategy(
                ExecutionMethod.SNIPPET, "Navigation steps are predictable and should use snippets"
            )
        elif target_element and target_element.exists and target_element.visible and target_element.enabled:
            strategy = Strategy(
                ExecutionMethod.SNIPPET, "Target element exists and is interactable", ExecutionMethod.AI
            )
        elif is_verification_step(step.name):
            strategy = Strategy(ExecutionMethod.AI, "Content validation requires AI analysis")
        elif target_element and not target_element.exists and target_element.alternative_selectors:
            strategy = Strategy(
                ExecutionMethod.HYBRID,
                "Original selector failed, trying alternatives with AI assistance",
                ExecutionMethod.AI,
            )
        elif page_state.has_errors:
            strategy = Strategy(ExecutionMethod.AI, "Page contains errors, using AI for recovery")
        else:
            method = ExecutionMethod.AI if step.prefer == "ai" else ExecutionMethod.SNIPPET
            fallback = None
            if step.fallback in ("snippet", "ai"):
                fallback = ExecutionMethod(step.fallback)
            if method == ExecutionMethod.SNIPPET and fallback == ExecutionMethod.AI:
                reason = "Default strategy: snippet-first with AI fallback"
            else:
                reason = f"Default strategy: {method.value} preferred by step"
            strategy = Strategy(method, reason, fallback)

        if step.fallback == "none" or strategy.fallback_method == strategy.method:
            strategy.fallback_method = None
        return strategy

    async def extract_page_content(self, page: Page) -> PageContent:
        """Bounded snapshot of text, form fields and buttons for AI context"""
        limit = self.settings.page_text_limit
        try:
            text = await page.inner_text("body")
        except Exception as e:
            logger.debug(f"Could not read page text: {e}")
            text = ""
        elements = await extract_interactive_elements(page)

        form_fields = [
            {
                "name": field.get("name") or field.get("id") or "",
                "type": field.get("type", ""),
                "value": field.get("value", ""),
                "label": field.get("label") or field.get("ariaLabel") or field.get("placeholder") or "",
            }
            for field in elements.get("inputs", [])
            if field.get("visible")
        ][:20]
        buttons = [
            {
                "text": (button.get("text") or button.get("ariaLabel") or "")[:50],
                "selector": next((s for s in (button.get("selectors") or {}).values() if s), ""),
            }
            for button in elements.get("buttons", [])
            if button.get("visible")
        ][:20]
        return PageContent(relevant_text=text[:limit], form_fields=form_fields, buttons=buttons)

    def safe_default(self, page: Page) -> PreFlightAnalysis:
        """Degraded analysis used when analysis itself failed"""
        try:
            url = page.url
        except Exception:
            url = ""
        return PreFlightAnalysis(
            page_state=PageState(url=url, title="", ready_state="unknown", has_errors=True),
            target_element=None,
            skip_recommendation=SkipRecommendation(False, None, 0.0),
            execution_strategy=Strategy(ExecutionMethod.AI, "analysis failed"),
        )

    async def _check_target_state(self, page: Page, step: IntentStep) -> Optional[SkipRecommendation]:
        conditions = [c for c in step.skip_conditions if c.type]
        states = [step.target_state] + [c.required_state for c in step.skip_conditions]
        states = [s for s in states if s]
        if not states and conditions:
            states = [None]

        for state in states:
            verdict = await self.detector.detect(page, state, conditions)
            if verdict.matches and verdict.confidence >= self.settings.min_state_skip_confidence:
                reason = verdict.reason if verdict.source == "declared" else f"Already in target state: {state}"
                return SkipRecommendation(True, reason, verdict.confidence)
        return None

    async def _current_value(self, page: Page, target: Target) -> Optional[str]:
        try:
            return await target.locator(page).input_value(timeout=self.prober.timeout)
        except Exception as e:
            logger.debug(f"Could not read value of {target.describe()}: {e}")
            return None

    @staticmethod
    def _parse(snippet: str):
        try:
            return parse_fragment(snippet)
        except UnsupportedFragment:
            return None

    @staticmethod
    def _url_satisfied(current_url: str, target_url: str) -> bool:
        if not current_url or not target_url:
            return False
        target = target_url.rstrip("/") or target_url
        return current_url == target_url or target in current_url
