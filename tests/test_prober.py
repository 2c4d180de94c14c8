import unittest

from intentflow.actions import Target
from intentflow.prober import ElementProber
from tests.fakes import FakeAI, FakeElement, FakePage


class ElementProberTests(unittest.IsolatedAsyncioTestCase):
    async def test_present_element_snapshot(self) -> None:
        page = FakePage(elements={"#email": FakeElement(visible=True, enabled=False, value="x", attributes={"name": "email"})})
        element = await ElementProber().probe(page, Target("css", "#email"))

        self.assertTrue(element.exists)
        self.assertTrue(element.visible)
        self.assertFalse(element.enabled)
        self.assertEqual(element.selector, "#email")
        self.assertEqual(element.attributes, {"name": "email", "value": "x"})
        self.assertEqual(element.alternative_selectors, [])

    async def test_no_target_means_no_probe(self) -> None:
        prober = ElementProber()
        self.assertIsNone(prober.extract_target("await page.goto('https://example.com')"))
        self.assertIsNone(await prober.probe(FakePage(), None))

    async def test_absent_element_keeps_only_resolving_alternatives(self) -> None:
        page = FakePage(elements={"#login-btn": FakeElement(), ".submit": FakeElement(), ".late": FakeElement()})
        ai = FakeAI(query_answer={
            "choice": ["#missing", "#login-btn", ".submit", ".late"],
            "confidence": 0.7,
            "rationale": "",
        })
        element = await ElementProber(ai, max_alternatives=3).probe(page, Target("css", "#submit"))

        self.assertFalse(element.exists)
        self.assertFalse(element.visible)
        self.assertEqual(element.alternative_selectors, ["#login-btn", ".submit"])
        self.assertEqual(len(ai.query_calls), 1)

    async def test_alternative_lookup_failure_gives_empty_list(self) -> None:
        def explode(_question):
            raise RuntimeError("rate limited")

        element = await ElementProber(FakeAI(query_answer=explode)).probe(FakePage(), Target("css", "#submit"))
        self.assertFalse(element.exists)
        self.assertEqual(element.alternative_selectors, [])

    async def test_probe_errors_are_reported_as_none(self) -> None:
        page = FakePage()
        page.locator_error = RuntimeError("execution context destroyed")
        self.assertIsNone(await ElementProber().probe(page, Target("css", "#submit")))


if __name__ == "__main__":
    unittest.main()
