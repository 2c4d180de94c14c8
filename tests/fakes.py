"""Fake page, locator and AI collaborator mirroring the Playwright async surface used by intentflow."""

import asyncio
import json
from types import SimpleNamespace
from typing import Any, Dict, List, Optional


class FakeElement:
    def __init__(self, visible: bool = True, enabled: bool = True, value: str = "",
                 attributes: Optional[Dict[str, str]] = None):
        self.visible = visible
        self.enabled = enabled
        self.value = value
        self.attributes = attributes or {}


class FakeLocator:
    def __init__(self, page: "FakePage", key: str):
        self.page = page
        self.key = key

    @property
    def first(self) -> "FakeLocator":
        return self

    def _element(self) -> FakeElement:
        element = self.page.elements.get(self.key)
        if element is None:
            raise TimeoutError(f"Timeout waiting for {self.key}")
        return element

    async def count(self) -> int:
        if self.page.locator_error:
            raise self.page.locator_error
        return 1 if self.key in self.page.elements else 0

    async def is_visible(self) -> bool:
        return self._element().visible

    async def is_enabled(self) -> bool:
        return self._element().enabled

    async def input_value(self, timeout=None) -> str:
        return self._element().value

    async def evaluate(self, script: str, arg=None, timeout=None):
        element = self._element()
        attributes = dict(element.attributes)
        attributes["value"] = element.value
        return attributes

    async def click(self, timeout=None):
        self._element()
        self.page.actions.append(("click", self.key))

    async def fill(self, value: str, timeout=None):
        self._element().value = value
        self.page.actions.append(("fill", self.key, value))

    async def press(self, key: str, timeout=None):
        self._element()
        self.page.actions.append(("press", self.key, key))

    async def wait_for(self, state: str = "visible", timeout=None):
        self._element()


class FakePage:
    def __init__(self, url: str = "https://example.com/", title: str = "Example",
                 text: str = "Welcome to the example app",
                 elements: Optional[Dict[str, FakeElement]] = None,
                 interactive: Optional[dict] = None):
        self.url = url
        self._title = title
        self.text = text
        self.elements = elements if elements is not None else {}
        self.interactive = interactive or {"buttons": [], "inputs": [], "selects": []}
        self.actions: List[tuple] = []
        self.evaluated: List[str] = []
        self.screenshots: List[str] = []
        self.goto_error: Optional[Exception] = None
        self.title_error: Optional[Exception] = None
        self.locator_error: Optional[Exception] = None

    async def title(self) -> str:
        if self.title_error:
            raise self.title_error
        return self._title

    async def evaluate(self, script: str, arg=None):
        if "readyState" in script:
            return "complete"
        if "querySelectorAll" in script:
            return self.interactive
        self.evaluated.append(script)
        return None

    async def inner_text(self, selector: str) -> str:
        return self.text

    async def goto(self, url: str, timeout=None, **kwargs):
        if self.goto_error:
            raise self.goto_error
        self.url = url
        self.actions.append(("goto", url))

    async def wait_for_selector(self, selector: str, timeout=None):
        if selector not in self.elements:
            raise TimeoutError(f"Timeout waiting for {selector}")
        self.actions.append(("wait", selector))

    async def wait_for_load_state(self, state: str = "load", timeout=None):
        self.actions.append(("load_state", state))

    async def screenshot(self, path: str = None, **kwargs):
        self.screenshots.append(path)

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def get_by_role(self, role: str, name: Optional[str] = None) -> FakeLocator:
        if name:
            return FakeLocator(self, f'role={role}[name="{name}"]')
        return FakeLocator(self, f"role={role}")

    def get_by_label(self, text: str) -> FakeLocator:
        return FakeLocator(self, f"label={text}")

    def get_by_text(self, text: str) -> FakeLocator:
        return FakeLocator(self, f"text={text}")

    def get_by_test_id(self, test_id: str) -> FakeLocator:
        return FakeLocator(self, f'[data-testid="{test_id}"]')

    def get_by_placeholder(self, text: str) -> FakeLocator:
        return FakeLocator(self, f'[placeholder="{text}"]')


class FakeAI:
    def __init__(self, act_result: Optional[dict] = None, act_error: Optional[Exception] = None,
                 query_answer: Any = None):
        self.act_result = act_result
        self.act_error = act_error
        self.query_answer = query_answer
        self.act_calls: List[tuple] = []
        self.query_calls: List[str] = []

    async def act(self, page, instruction: str, context=None, timeout=None) -> dict:
        self.act_calls.append((instruction, context))
        if self.act_error:
            raise self.act_error
        return self.act_result or {"success": True, "fragment": "click #ai-chosen"}

    async def query(self, question: str, context: str = "", choices=None) -> dict:
        self.query_calls.append(question)
        if callable(self.query_answer):
            return self.query_answer(question)
        if self.query_answer is not None:
            return self.query_answer
        return {"choice": [], "confidence": 0.0, "rationale": ""}


class FakeCompletions:
    """Stands in for AsyncGroq().chat.completions; replies are returned in order"""

    def __init__(self, replies: List[Any], delay: float = 0.0):
        self.replies = list(replies)
        self.delay = delay
        self.requests: List[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def fake_groq(replies: List[Any], delay: float = 0.0) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=FakeCompletions(replies, delay)))
