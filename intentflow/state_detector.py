"""
State detector - decides whether the page is already in a named logical state

Evaluators are tried in order and the first verdict wins:
declared conditions, login/authentication heuristics, AI judgment.
A substring match of the state name in the page text is the weak last resort.
"""

from typing import Awaitable, Callable, List, Optional

from playwright.async_api import Page

from .config import STATE_TEXT_LIMIT
from .logger import logger
from .models import SkipCondition, Verdict

Evaluator = Callable[[Page, Optional[str], List[SkipCondition]], Awaitable[Optional[Verdict]]]

CONDITION_CONFIDENCE = {
    "url_match": 0.95,
    "element_exists": 0.9,
    "text_present": 0.9,
}
WEAK_TEXT_CONFIDENCE = 0.3

LOGIN_STATE_MARKERS = ("login", "log_in", "signin", "sign_in", "logged_out", "unauthenticated")
AUTHENTICATED_STATE_MARKERS = ("authenticated", "logged_in", "signed_in", "dashboard", "account", "workspace")
LOGIN_URL_MARKERS = ("login", "signin", "sign-in", "sign_in", "log-in", "/auth")
LOGIN_TITLE_MARKERS = ("log in", "login", "sign in", "signin")
PASSWORD_FIELD = 'input[type="password"]'


def _normalize(state: str) -> str:
    return state.strip().lower().replace(" ", "_").replace("-", "_")


class StateDetector:
    """Ordered chain of state evaluators"""

    def __init__(self, ai=None, text_limit: int = STATE_TEXT_LIMIT,
                 evaluators: Optional[List[Evaluator]] = None):
        self.ai = ai
        self.text_limit = text_limit
        if evaluators is None:
            evaluators = [self.check_declared_conditions, self.check_heuristics, self.ask_ai]
        self.evaluators = evaluators

    async def detect(self, page: Page, state: Optional[str],
                     conditions: Optional[List[SkipCondition]] = None) -> Verdict:
        """
        Classify the page against a logical state

        Args:
            page: Live page
            state: State name (e.g. "authenticated_area"); None checks declared conditions only
            conditions: Declared skip conditions of the step

        Returns:
            The first decisive verdict, or the weak text-match verdict
        """
        conditions = conditions or []
        for evaluator in self.evaluators:
            try:
                verdict = await evaluator(page, state, conditions)
            except Exception as e:
                logger.debug(f"State evaluator {getattr(evaluator, '__name__', evaluator)} failed: {e}")
                continue
            if verdict is not None:
                return verdict

        if not state:
            return Verdict(False, 0.0, "declared", "no declared condition matched")
        return await self.weak_text_match(page, state)

    async def check_declared_conditions(self, page: Page, state: Optional[str],
                                        conditions: List[SkipCondition]) -> Optional[Verdict]:
        for condition in conditions:
            if condition.type not in CONDITION_CONFIDENCE or not condition.value:
                continue
            if condition.type == "url_match":
                matched = condition.value in page.url
            elif condition.type == "element_exists":
                matched = await page.locator(condition.value).first.count() > 0
            else:
                matched = condition.value.lower() in (await page.inner_text("body")).lower()

            if matched:
                reason = condition.skip_reason or f"{condition.type} matched \"{condition.value}\""
                return Verdict(True, CONDITION_CONFIDENCE[condition.type], "declared", reason)
        return None

    async def check_heuristics(self, page: Page, state: Optional[str],
                               conditions: List[SkipCondition]) -> Optional[Verdict]:
        if not state:
            return None
        normalized = _normalize(state)
        wants_login_page = any(marker in normalized for marker in LOGIN_STATE_MARKERS)
        wants_authenticated = not wants_login_page and any(
            marker in normalized for marker in AUTHENTICATED_STATE_MARKERS
        )
        if not wants_login_page and not wants_authenticated:
            return None

        on_login_page = await self._looks_like_login_page(page)
        if wants_login_page and on_login_page:
            return Verdict(True, 0.85, "heuristic", "login form markers present")
        if wants_authenticated and on_login_page:
            return Verdict(False, 0.9, "heuristic", "page is a login page")
        return None

    async def ask_ai(self, page: Page, state: Optional[str],
                     conditions: List[SkipCondition]) -> Optional[Verdict]:
        if not state or self.ai is None:
            return None

        text = (await page.inner_text("body"))[:self.text_limit]
        answer = await self.ai.query(
            f"Is the page currently in the state \"{state}\"?",
            f"URL: {page.url}\nTitle: {await page.title()}\nVisible text:\n{text}",
            choices=["yes", "no"],
        )
        choice = answer.get("choice")
        if isinstance(choice, bool):
            matches = choice
        elif isinstance(choice, str) and choice.strip().lower() in ("yes", "true", "no", "false"):
            matches = choice.strip().lower() in ("yes", "true")
        else:
            return None
        return Verdict(matches, float(answer.get("confidence", 0.0)), "ai", answer.get("rationale", ""))

    async def weak_text_match(self, page: Page, state: str) -> Verdict:
        try:
            text = (await page.inner_text("body")).lower()
        except Exception as e:
            return Verdict(False, WEAK_TEXT_CONFIDENCE, "text", f"page text unavailable: {e}")
        needle = state.strip().lower()
        matches = needle in text or needle.replace("_", " ") in text
        return Verdict(matches, WEAK_TEXT_CONFIDENCE, "text", "state name in page text" if matches else "")

    async def _looks_like_login_page(self, page: Page) -> bool:
        url = page.url.lower()
        if any(marker in url for marker in LOGIN_URL_MARKERS):
            return True
        title = (await page.title()).lower()
        if any(marker in title for marker in LOGIN_TITLE_MARKERS):
            return True
        password = page.locator(PASSWORD_FIELD).first
        return await password.count() > 0 and await password.is_visible()
