import copy
import json
import unittest

from intentflow.errors import IntentSpecValidationError
from intentflow.validator import (
    extract_parameters_from_steps,
    parse_intent_spec,
    sanitize_intent_spec,
    validate_intent_spec,
)

VALID_SPEC = {
    "name": "Login",
    "description": "Sign in to the example app",
    "url": "https://example.com/login",
    "params": ["USERNAME", "PASSWORD"],
    "steps": [
        {
            "name": "Enter username",
            "ai_instruction": "Type {{USERNAME}} into the username field",
            "snippet": "await page.fill('#username', '{{USERNAME}}')",
            "prefer": "snippet",
            "fallback": "ai",
        },
        {
            "name": "Enter password",
            "ai_instruction": "Type the password",
            "snippet": "await page.fill('#password', '{{PASSWORD}}')",
            "prefer": "snippet",
            "fallback": "none",
        },
    ],
    "preferences": {"dynamic_elements": "ai", "simple_steps": "snippet"},
}


class ValidateIntentSpecTests(unittest.TestCase):
    def test_valid_spec_passes(self) -> None:
        result = validate_intent_spec(VALID_SPEC)
        self.assertTrue(result.valid, result.errors)
        self.assertEqual(result.errors, [])

    def test_undeclared_parameter_is_an_error(self) -> None:
        spec = copy.deepcopy(VALID_SPEC)
        spec["params"] = ["USERNAME"]
        result = validate_intent_spec(spec)
        self.assertFalse(result.valid)
        self.assertIn("undeclared parameter: PASSWORD", result.errors)

    def test_unused_parameter_is_only_a_warning(self) -> None:
        spec = copy.deepcopy(VALID_SPEC)
        spec["params"].append("UNUSED")
        result = validate_intent_spec(spec)
        self.assertTrue(result.valid)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("UNUSED", result.warnings[0])

    def test_missing_fields_are_reported(self) -> None:
        result = validate_intent_spec({"name": "x"})
        self.assertFalse(result.valid)
        for field in ("description", "url", "params", "steps", "preferences"):
            self.assertIn(f"Missing required field: {field}", result.errors)

    def test_step_field_rules(self) -> None:
        spec = copy.deepcopy(VALID_SPEC)
        spec["steps"][0]["prefer"] = "robot"
        spec["steps"][0]["retries"] = -1
        spec["steps"][1]["timeout"] = "soon"
        result = validate_intent_spec(spec)
        self.assertFalse(result.valid)
        joined = "\n".join(result.errors)
        self.assertIn("Step 0: Field \"prefer\"", joined)
        self.assertIn("Step 0: Field \"retries\"", joined)
        self.assertIn("Step 1: Field \"timeout\"", joined)

    def test_duplicate_params_and_bad_url(self) -> None:
        spec = copy.deepcopy(VALID_SPEC)
        spec["params"] = ["USERNAME", "USERNAME", "PASSWORD"]
        spec["url"] = "not a url"
        result = validate_intent_spec(spec)
        self.assertIn("Duplicate parameters found", result.errors)
        self.assertIn("Field \"url\" must be a valid URL", result.errors)

    def test_skip_conditions_are_checked(self) -> None:
        spec = copy.deepcopy(VALID_SPEC)
        spec["steps"][0]["skipConditions"] = [
            {"type": "url_match", "value": "/dashboard"},
            {"requiredState": "authenticated_area"},
            {"type": "cookie", "value": "x"},
        ]
        result = validate_intent_spec(spec)
        self.assertFalse(result.valid)
        self.assertEqual(len(result.errors), 1)
        self.assertIn("unknown type", result.errors[0])

    def test_parameters_are_collected_from_all_fields(self) -> None:
        steps = [{"snippet": "fill #a {{A}}", "ai_instruction": "{{B}}", "selector": "#{{C}}", "value": "{{ D }}"}]
        self.assertEqual(extract_parameters_from_steps(steps), {"A", "B", "C", "D"})


class SanitizeIntentSpecTests(unittest.TestCase):
    def test_sanitize_recovers_near_miss_document(self) -> None:
        document = {
            "name": " Search ",
            "startUrl": "https://example.com",
            "params": ["QUERY", "QUERY", ""],
            "steps": [
                {
                    "name": "Search",
                    "aiInstruction": "Search for {{QUERY}}",
                    "snippet": "fill #q with {{QUERY}}",
                    "prefer": "snippet",
                    "fallback": "ai",
                    "retries": -3,
                },
                {"name": "Broken", "snippet": "click #x"},
            ],
        }
        self.assertFalse(validate_intent_spec(document).valid)

        sanitized = sanitize_intent_spec(document)
        self.assertEqual(sanitized["name"], "Search")
        self.assertEqual(sanitized["url"], "https://example.com")
        self.assertEqual(sanitized["description"], "Search")
        self.assertEqual(sanitized["params"], ["QUERY"])
        self.assertEqual(len(sanitized["steps"]), 1)
        self.assertNotIn("retries", sanitized["steps"][0])
        self.assertEqual(sanitized["preferences"], {"dynamic_elements": "ai", "simple_steps": "snippet"})
        self.assertTrue(validate_intent_spec(sanitized).valid)

    def test_sanitize_keeps_only_declared_params(self) -> None:
        document = copy.deepcopy(VALID_SPEC)
        document["params"] = [" USERNAME ", "USERNAME"]
        sanitized = sanitize_intent_spec(document)

        self.assertEqual(sanitized["params"], ["USERNAME"])
        self.assertIn("undeclared parameter: PASSWORD", validate_intent_spec(sanitized).errors)

    def test_undeclared_param_is_not_recovered_by_parsing(self) -> None:
        document = copy.deepcopy(VALID_SPEC)
        document["params"] = ["USERNAME"]
        with self.assertRaises(IntentSpecValidationError) as ctx:
            parse_intent_spec(json.dumps(document))
        self.assertIn("undeclared parameter: PASSWORD", ctx.exception.errors)


class ParseIntentSpecTests(unittest.TestCase):
    def test_parses_json_wrapped_in_prose(self) -> None:
        response = "Here is the spec:\n```json\n" + json.dumps(VALID_SPEC) + "\n```"
        spec = parse_intent_spec(response)
        self.assertEqual(spec.name, "Login")
        self.assertEqual(len(spec.steps), 2)
        self.assertEqual(spec.steps[1].fallback, "none")

    def test_invalid_json_raises(self) -> None:
        with self.assertRaises(IntentSpecValidationError):
            parse_intent_spec("no json here")

    def test_sanitization_pass_is_attempted(self) -> None:
        document = copy.deepcopy(VALID_SPEC)
        del document["preferences"]
        spec = parse_intent_spec(json.dumps(document))
        self.assertEqual(spec.preferences["simple_steps"], "snippet")

    def test_unrecoverable_document_raises_with_errors(self) -> None:
        with self.assertRaises(IntentSpecValidationError) as ctx:
            parse_intent_spec(json.dumps({"name": "x", "steps": []}))
        self.assertTrue(ctx.exception.errors)


if __name__ == "__main__":
    unittest.main()
