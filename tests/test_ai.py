import unittest

from intentflow.ai import AIAgent, summarize_elements
from intentflow.errors import AIDelegationFailure, UnsupportedFragment
from tests.fakes import FakeElement, FakePage, fake_groq


class ActTests(unittest.IsolatedAsyncioTestCase):
    async def test_runs_the_chosen_fragment(self) -> None:
        client = fake_groq([{"action": "click #submit", "reason": "the submit button"}])
        page = FakePage(elements={"#submit": FakeElement()})

        result = await AIAgent(client=client).act(page, "Submit the form", {"step": "Submit"})

        self.assertEqual(result, {"success": True, "fragment": "click #submit", "reason": "the submit button"})
        self.assertEqual(page.actions, [("click", "#submit")])
        request = client.chat.completions.requests[0]
        self.assertEqual(request["response_format"], {"type": "json_object"})
        self.assertIn("Submit the form", request["messages"][1]["content"])

    async def test_no_action_is_a_delegation_failure(self) -> None:
        client = fake_groq([{"action": None, "reason": "no such element"}])
        with self.assertRaises(AIDelegationFailure) as ctx:
            await AIAgent(client=client).act(FakePage(), "Open the admin panel")
        self.assertIn("no such element", str(ctx.exception))

    async def test_ai_fragments_never_evaluate_raw_code(self) -> None:
        client = fake_groq([{"action": "document.body.remove()", "reason": "clean up"}])
        page = FakePage()
        with self.assertRaises(UnsupportedFragment):
            await AIAgent(client=client).act(page, "Reset the page")
        self.assertEqual(page.evaluated, [])


class QueryTests(unittest.IsolatedAsyncioTestCase):
    async def test_confidence_words_are_mapped(self) -> None:
        client = fake_groq([{"choice": "yes", "confidence": "high", "rationale": "banner shown"}])
        answer = await AIAgent(client=client).query("Is the user signed in?", choices=["yes", "no"])
        self.assertEqual(answer, {"choice": "yes", "confidence": 0.9, "rationale": "banner shown"})

    async def test_numeric_confidence_is_clamped(self) -> None:
        client = fake_groq([{"choice": ["#a"], "confidence": 7}])
        answer = await AIAgent(client=client).query("Alternatives?")
        self.assertEqual(answer["confidence"], 1.0)
        self.assertEqual(answer["rationale"], "")

    async def test_missing_choice(self) -> None:
        with self.assertRaises(AIDelegationFailure):
            await AIAgent(client=fake_groq([{"answer": "yes"}])).query("Signed in?")


class ExtractTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_data_payload(self) -> None:
        client = fake_groq([{"data": {"total": "$42.00"}}])
        page = FakePage(text="Order summary Total: $42.00")
        data = await AIAgent(client=client).extract(page, "Extract the order total")

        self.assertEqual(data, {"total": "$42.00"})
        self.assertIn("Total: $42.00", client.chat.completions.requests[0]["messages"][1]["content"])


class CompletionFailureTests(unittest.IsolatedAsyncioTestCase):
    async def test_timeout(self) -> None:
        agent = AIAgent(client=fake_groq([{"choice": "yes"}], delay=0.5), timeout=0.01)
        with self.assertRaises(AIDelegationFailure) as ctx:
            await agent.query("Signed in?")
        self.assertIn("timed out", str(ctx.exception))

    async def test_unparseable_output(self) -> None:
        with self.assertRaises(AIDelegationFailure):
            await AIAgent(client=fake_groq(["definitely not json"])).query("Signed in?")

    async def test_transport_error(self) -> None:
        with self.assertRaises(AIDelegationFailure) as ctx:
            await AIAgent(client=fake_groq([RuntimeError("rate limited")])).query("Signed in?")
        self.assertIn("rate limited", str(ctx.exception))


class SummarizeElementsTests(unittest.TestCase):
    def test_only_visible_elements_are_listed(self) -> None:
        summary = summarize_elements({
            "buttons": [
                {"text": "Sign in", "visible": True, "selectors": {"id": "#signin"}},
                {"text": "Hidden", "visible": False, "selectors": {"id": "#hidden"}},
            ],
            "inputs": [{"type": "email", "name": "email", "visible": True, "selectors": {"name": 'input[name="email"]'}}],
        })
        self.assertIn("#signin", summary)
        self.assertNotIn("#hidden", summary)
        self.assertIn('input[name="email"]', summary)

    def test_empty(self) -> None:
        self.assertEqual(summarize_elements({}), "No interactive elements found")


if __name__ == "__main__":
    unittest.main()
