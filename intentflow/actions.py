"""
Action language - parses snippet fragments into action nodes and runs them on a page

A fragment describes exactly one browser operation. Two surface forms are
understood: Playwright call shapes as they appear in recorded snippets

    await page.goto('https://example.com/login')
    await page.fill('#email', '{{EMAIL}}')
    await page.getByRole('button', { name: 'Sign in' }).click()

and a terse command form

    navigate https://example.com/login
    fill #email with {{EMAIL}}
    click #submit
"""

import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple, Union

from playwright.async_api import Locator, Page

from .config import ALLOW_RAW_SNIPPETS, DEFAULT_STEP_TIMEOUT
from .errors import ElementNotFound, UnsupportedFragment
from .logger import logger

TARGET_KINDS = ("css", "role", "label", "text", "testid", "placeholder")


@dataclass(frozen=True)
class Target:
    """Something on the page an action operates on"""

    kind: str
    value: str
    name: Optional[str] = None

    def describe(self) -> str:
        """Selector-style string for logs, analyses and AI context"""
        if self.kind == "css":
            return self.value
        if self.kind == "role":
            if self.name:
                return f'role={self.value}[name="{self.name}"]'
            return f"role={self.value}"
        if self.kind == "testid":
            return f'[data-testid="{self.value}"]'
        if self.kind == "placeholder":
            return f'[placeholder="{self.value}"]'
        return f"{self.kind}={self.value}"

    def locator(self, page: Page) -> Locator:
        """First matching element for this target"""
        if self.kind == "role":
            if self.name:
                return page.get_by_role(self.value, name=self.name).first
            return page.get_by_role(self.value).first
        if self.kind == "label":
            return page.get_by_label(self.value).first
        if self.kind == "text":
            return page.get_by_text(self.value).first
        if self.kind == "testid":
            return page.get_by_test_id(self.value).first
        if self.kind == "placeholder":
            return page.get_by_placeholder(self.value).first
        return page.locator(self.value).first


@dataclass(frozen=True)
class Navigate:
    url: str


@dataclass(frozen=True)
class Click:
    target: Target


@dataclass(frozen=True)
class Fill:
    target: Target
    value: str


@dataclass(frozen=True)
class Press:
    target: Target
    key: str


@dataclass(frozen=True)
class WaitFor:
    target: Target
    timeout: Optional[int] = None


@dataclass(frozen=True)
class WaitForLoadState:
    state: str = "load"


@dataclass(frozen=True)
class RawExpression:
    """Opaque expression evaluated in the page; only produced when explicitly allowed"""
    source: str


Action = Union[Navigate, Click, Fill, Press, WaitFor, WaitForLoadState, RawExpression]
TARGETED_ACTIONS = (Click, Fill, Press, WaitFor)


# ---------------------------------------------------------------------------
# Grammar
# ---------------------------------------------------------------------------

def _quoted(name: str) -> str:
    return rf"(?P<{name}_q>['\"`])(?P<{name}>(?:(?!(?P={name}_q)).)*)(?P={name}_q)"


_PREFIX = r"^(?:await\s+)?page\."
_END = r"\s*;?\s*$"
_REST = r"(?:\s*,.*)?"
# call arguments: quoted strings (which may hold parentheses) or anything but parentheses and quotes
_ARGS = r"(?:'[^']*'|\"[^\"]*\"|`[^`]*`|[^()'\"`])*"

_FACTORIES = {
    "locator": "css",
    "getByRole": "role",
    "getByLabel": "label",
    "getByText": "text",
    "getByTestId": "testid",
    "getByPlaceholder": "placeholder",
}

GOTO_PATTERN = re.compile(_PREFIX + r"goto\(\s*" + _quoted("url") + _REST + r"\)" + _END)
CLICK_PATTERN = re.compile(_PREFIX + r"click\(\s*" + _quoted("selector") + _REST + r"\)" + _END)
FILL_PATTERN = re.compile(
    _PREFIX + r"(?:fill|type)\(\s*" + _quoted("selector") + r"\s*,\s*" + _quoted("value") + _REST + r"\)" + _END
)
PRESS_PATTERN = re.compile(
    _PREFIX + r"press\(\s*" + _quoted("selector") + r"\s*,\s*" + _quoted("key") + _REST + r"\)" + _END
)
WAIT_SELECTOR_PATTERN = re.compile(
    _PREFIX + r"waitForSelector\(\s*" + _quoted("selector") + r"(?P<options>\s*,.*)?\)" + _END
)
LOAD_STATE_PATTERN = re.compile(
    _PREFIX + r"waitForLoadState\(\s*(?:" + _quoted("state") + r")?" + _REST + r"\)" + _END
)
LOCATOR_CHAIN_PATTERN = re.compile(
    _PREFIX
    + r"(?P<factory>" + "|".join(_FACTORIES) + r")\((?P<args>" + _ARGS + r")\)"
    + r"(?:\.first\(\))?"
    + r"\.(?P<op>click|fill|type|press|waitFor)\((?P<op_args>" + _ARGS + r")\)"
    + _END
)

TERSE_NAVIGATE_PATTERN = re.compile(r"^(?:navigate|goto|go)\s+(?:to\s+)?(?P<url>\S+)$", re.IGNORECASE)
TERSE_CLICK_PATTERN = re.compile(r"^click\s+(?:on\s+)?(?P<selector>.+)$", re.IGNORECASE)
TERSE_FILL_PATTERN = re.compile(
    r"^(?:fill|type)\s+(?P<selector>" + _quoted("quoted_selector") + r"|\S+)\s+(?:with\s+)?(?P<value>.+)$",
    re.IGNORECASE,
)
TERSE_PRESS_PATTERN = re.compile(r"^press\s+(?P<key>\S+)\s+(?:on|in)\s+(?P<selector>.+)$", re.IGNORECASE)
TERSE_WAIT_PATTERN = re.compile(r"^wait\s+(?:for\s+)?(?P<selector>.+)$", re.IGNORECASE)

_STRING = re.compile(r"(['\"`])(.*?)\1")
_NAME_OPTION = re.compile(r"name\s*:\s*" + _quoted("name"))
_TIMEOUT_OPTION = re.compile(r"timeout\s*:\s*(?P<timeout>\d+)")


def _unquote(text: str) -> str:
    text = text.strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "'\"`":
        return text[1:-1]
    return text


def _first_string(text: str) -> Optional[str]:
    match = _STRING.search(text or "")
    return match.group(2) if match else None


def _timeout_option(text: Optional[str]) -> Optional[int]:
    match = _TIMEOUT_OPTION.search(text or "")
    return int(match.group("timeout")) if match else None


def _chain_target(match: re.Match) -> Target:
    kind = _FACTORIES[match.group("factory")]
    args = match.group("args")
    value = _first_string(args)
    if value is None:
        raise UnsupportedFragment(match.string)
    name = None
    if kind == "role":
        name_match = _NAME_OPTION.search(args)
        name = name_match.group("name") if name_match else None
    return Target(kind, value, name)


def _build_chain(match: re.Match) -> Action:
    target = _chain_target(match)
    op = match.group("op")
    op_args = match.group("op_args")
    if op == "click":
        return Click(target)
    if op in ("fill", "type"):
        value = _first_string(op_args)
        if value is None:
            raise UnsupportedFragment(match.string)
        return Fill(target, value)
    if op == "press":
        key = _first_string(op_args)
        if key is None:
            raise UnsupportedFragment(match.string)
        return Press(target, key)
    return WaitFor(target, _timeout_option(op_args))


def _css(selector: str) -> Target:
    return Target("css", _unquote(selector))


def _terse_fill(match: re.Match) -> Action:
    selector = match.group("quoted_selector") or match.group("selector")
    return Fill(_css(selector), _unquote(match.group("value")))


_RULES: List[Tuple[re.Pattern, Callable[[re.Match], Action]]] = [
    (GOTO_PATTERN, lambda m: Navigate(m.group("url"))),
    (CLICK_PATTERN, lambda m: Click(_css(m.group("selector")))),
    (FILL_PATTERN, lambda m: Fill(_css(m.group("selector")), m.group("value"))),
    (PRESS_PATTERN, lambda m: Press(_css(m.group("selector")), m.group("key"))),
    (WAIT_SELECTOR_PATTERN, lambda m: WaitFor(_css(m.group("selector")), _timeout_option(m.group("options")))),
    (LOAD_STATE_PATTERN, lambda m: WaitForLoadState(m.group("state") or "load")),
    (LOCATOR_CHAIN_PATTERN, _build_chain),
    (TERSE_NAVIGATE_PATTERN, lambda m: Navigate(_unquote(m.group("url")))),
    (TERSE_FILL_PATTERN, _terse_fill),
    (TERSE_PRESS_PATTERN, lambda m: Press(_css(m.group("selector")), m.group("key"))),
    (TERSE_CLICK_PATTERN, lambda m: Click(_css(m.group("selector")))),
    (TERSE_WAIT_PATTERN, lambda m: WaitFor(_css(m.group("selector")))),
]


def parse_fragment(fragment: str, allow_raw: bool = False) -> Action:
    """
    Parse one snippet fragment into an action node

    Args:
        fragment: Snippet text describing a single operation
        allow_raw: Evaluate unrecognized fragments as page expressions instead of failing

    Returns:
        The action node for the first matching rule

    Raises:
        UnsupportedFragment: if no rule matches and raw evaluation is not allowed
    """
    source = (fragment or "").strip()
    if source:
        for pattern, build in _RULES:
            match = pattern.match(source)
            if match:
                return build(match)
    if allow_raw and source:
        return RawExpression(source)
    raise UnsupportedFragment(source)


def target_of(fragment: str) -> Optional[Target]:
    """Target element of a fragment, or None for navigation and unrecognized fragments"""
    try:
        action = parse_fragment(fragment)
    except UnsupportedFragment:
        return None
    return getattr(action, "target", None)


def is_navigation(fragment: str) -> bool:
    try:
        return isinstance(parse_fragment(fragment), Navigate)
    except UnsupportedFragment:
        return False


def retarget(action: Action, selector: str) -> Action:
    """Same operation aimed at a different CSS selector"""
    if not isinstance(action, TARGETED_ACTIONS):
        return action
    return replace(action, target=Target("css", selector))


def render(action: Action) -> str:
    """Canonical terse text for an action node"""
    if isinstance(action, Navigate):
        return f"navigate {action.url}"
    if isinstance(action, Click):
        return f"click {action.target.describe()}"
    if isinstance(action, Fill):
        return f"fill {action.target.describe()} with {action.value}"
    if isinstance(action, Press):
        return f"press {action.key} on {action.target.describe()}"
    if isinstance(action, WaitFor):
        return f"wait {action.target.describe()}"
    if isinstance(action, WaitForLoadState):
        return f"page.waitForLoadState('{action.state}')"
    return action.source


# ---------------------------------------------------------------------------
# Interpreter
# ---------------------------------------------------------------------------

class ActionInterpreter:
    """Runs exactly one action per fragment against a live page"""

    def __init__(self, allow_raw: bool = ALLOW_RAW_SNIPPETS, timeout: int = DEFAULT_STEP_TIMEOUT):
        self.allow_raw = allow_raw
        self.timeout = timeout

    def parse(self, fragment: str) -> Action:
        return parse_fragment(fragment, allow_raw=self.allow_raw)

    async def execute(self, page: Page, fragment: str, timeout: Optional[int] = None):
        """Parse and run a fragment, returning the raw result of the page operation"""
        return await self.run(page, self.parse(fragment), timeout)

    async def run(self, page: Page, action: Action, timeout: Optional[int] = None):
        if timeout is None:
            timeout = self.timeout

        if isinstance(action, Navigate):
            logger.debug(f"Navigating to: {action.url}")
            return await page.goto(action.url, timeout=timeout)

        if isinstance(action, Click):
            element = await self._resolve(page, action.target)
            logger.debug(f"Clicking: {action.target.describe()}")
            return await element.click(timeout=timeout)

        if isinstance(action, Fill):
            element = await self._resolve(page, action.target)
            logger.debug(f"Filling: {action.target.describe()}")
            return await element.fill(action.value, timeout=timeout)

        if isinstance(action, Press):
            element = await self._resolve(page, action.target)
            return await element.press(action.key, timeout=timeout)

        if isinstance(action, WaitFor):
            wait_timeout = action.timeout or timeout
            if action.target.kind == "css":
                return await page.wait_for_selector(action.target.value, timeout=wait_timeout)
            return await action.target.locator(page).wait_for(state="visible", timeout=wait_timeout)

        if isinstance(action, WaitForLoadState):
            return await page.wait_for_load_state(action.state, timeout=timeout)

        if isinstance(action, RawExpression):
            if not self.allow_raw:
                raise UnsupportedFragment(action.source)
            logger.warning(f"Evaluating raw snippet expression: {action.source[:80]}")
            return await page.evaluate(action.source)

        raise UnsupportedFragment(str(action))

    async def _resolve(self, page: Page, target: Target) -> Locator:
        element = target.locator(page)
        if await element.count() == 0:
            raise ElementNotFound(target.describe())
        return element
