import unittest

from intentflow.models import SkipCondition, Verdict
from intentflow.state_detector import StateDetector
from tests.fakes import FakeAI, FakeElement, FakePage


class StateDetectorTests(unittest.IsolatedAsyncioTestCase):
    async def test_declared_url_condition(self) -> None:
        page = FakePage(url="https://example.com/dashboard")
        conditions = [SkipCondition(type="url_match", value="/dashboard", skip_reason="Already signed in")]
        verdict = await StateDetector().detect(page, "authenticated_area", conditions)

        self.assertTrue(verdict.matches)
        self.assertEqual(verdict.confidence, 0.95)
        self.assertEqual(verdict.source, "declared")
        self.assertEqual(verdict.reason, "Already signed in")

    async def test_declared_element_and_text_conditions(self) -> None:
        page = FakePage(text="Hello Ada", elements={"#avatar": FakeElement()})
        element = await StateDetector().detect(page, None, [SkipCondition(type="element_exists", value="#avatar")])
        text = await StateDetector().detect(page, None, [SkipCondition(type="text_present", value="hello ada")])

        self.assertEqual((element.matches, element.confidence), (True, 0.9))
        self.assertEqual((text.matches, text.confidence), (True, 0.9))

    async def test_no_state_and_no_matching_condition(self) -> None:
        verdict = await StateDetector().detect(FakePage(), None, [SkipCondition(type="url_match", value="/nowhere")])
        self.assertFalse(verdict.matches)
        self.assertEqual(verdict.confidence, 0.0)

    async def test_login_page_is_a_confident_negative_for_authenticated_states(self) -> None:
        ai = FakeAI(query_answer={"choice": "yes", "confidence": 1.0, "rationale": ""})
        page = FakePage(url="https://example.com/login")
        verdict = await StateDetector(ai).detect(page, "authenticated_area")

        self.assertFalse(verdict.matches)
        self.assertEqual(verdict.confidence, 0.9)
        self.assertEqual(verdict.source, "heuristic")
        self.assertEqual(ai.query_calls, [])

    async def test_password_field_marks_login_state(self) -> None:
        page = FakePage(url="https://example.com/", elements={'input[type="password"]': FakeElement()})
        verdict = await StateDetector().detect(page, "login_page")
        self.assertTrue(verdict.matches)
        self.assertEqual(verdict.confidence, 0.85)

    async def test_ai_judgment(self) -> None:
        ai = FakeAI(query_answer={"choice": "yes", "confidence": 0.8, "rationale": "cart has items"})
        verdict = await StateDetector(ai).detect(FakePage(), "cart_filled")

        self.assertTrue(verdict.matches)
        self.assertEqual(verdict.confidence, 0.8)
        self.assertEqual(verdict.source, "ai")
        self.assertEqual(len(ai.query_calls), 1)

    async def test_unparseable_ai_answer_falls_through_to_weak_text_match(self) -> None:
        ai = FakeAI(query_answer={"choice": "maybe", "confidence": 0.9, "rationale": ""})
        page = FakePage(text="Your cart filled up nicely")
        verdict = await StateDetector(ai).detect(page, "cart_filled")

        self.assertTrue(verdict.matches)
        self.assertEqual(verdict.confidence, 0.3)
        self.assertEqual(verdict.source, "text")

    async def test_failing_evaluator_is_skipped(self) -> None:
        async def broken(page, state, conditions):
            raise RuntimeError("boom")

        async def decisive(page, state, conditions):
            return Verdict(True, 0.7, "custom")

        verdict = await StateDetector(evaluators=[broken, decisive]).detect(FakePage(), "anything")
        self.assertEqual(verdict.source, "custom")


if __name__ == "__main__":
    unittest.main()
