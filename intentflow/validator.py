"""
Intent Spec validation, sanitization and parsing of generated documents
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Union
from urllib.parse import urlparse

from .bindings import find_parameters
from .errors import IntentSpecValidationError
from .logger import logger
from .models import IntentSpec

METHOD_VALUES = ("snippet", "ai")
FALLBACK_VALUES = ("snippet", "ai", "none")
SKIP_CONDITION_TYPES = ("url_match", "element_exists", "text_present")
STEP_PARAM_FIELDS = ("value", "selector", "ai_instruction", "snippet")

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass
class ValidationResult:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def fail(self, message: str):
        self.errors.append(message)
        self.valid = False


def _is_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def _check_required_string(payload: Dict[str, Any], key: str, result: ValidationResult, prefix: str = ""):
    value = payload.get(key)
    if value is None or value == "":
        result.fail(f"{prefix}Missing required field: {key}")
    elif not isinstance(value, str):
        result.fail(f"{prefix}Field \"{key}\" must be a string")
    elif not value.strip():
        result.fail(f"{prefix}Field \"{key}\" cannot be empty")


def extract_parameters_from_steps(steps: List[Dict[str, Any]]) -> Set[str]:
    """Parameter names referenced with {{PARAM}} in any step field"""
    params: Set[str] = set()
    for step in steps:
        if not isinstance(step, dict):
            continue
        for key in STEP_PARAM_FIELDS:
            params.update(find_parameters(step.get(key)))
    return params


def validate_intent_step(step: Any, index: int = 0) -> ValidationResult:
    """Validate a single dual-path step"""
    result = ValidationResult()
    prefix = f"Step {index}: "

    if not isinstance(step, dict):
        result.fail(f"{prefix}Step must be an object")
        return result

    for key in ("name", "ai_instruction", "snippet"):
        _check_required_string(step, key, result, prefix)

    if not step.get("prefer"):
        result.fail(f"{prefix}Missing required field: prefer")
    elif step["prefer"] not in METHOD_VALUES:
        result.fail(f"{prefix}Field \"prefer\" must be either \"ai\" or \"snippet\"")

    if not step.get("fallback"):
        result.fail(f"{prefix}Missing required field: fallback")
    elif step["fallback"] not in FALLBACK_VALUES:
        result.fail(f"{prefix}Field \"fallback\" must be \"ai\", \"snippet\", or \"none\"")

    if "selector" in step:
        selector = step["selector"]
        if not isinstance(selector, str):
            result.fail(f"{prefix}Field \"selector\" must be a string")
        elif not selector.strip():
            result.fail(f"{prefix}Field \"selector\" cannot be empty when provided")

    if step.get("value") is not None and not isinstance(step["value"], str):
        result.fail(f"{prefix}Field \"value\" must be a string")

    if "timeout" in step:
        timeout = step["timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            result.fail(f"{prefix}Field \"timeout\" must be a number")
        elif timeout < 0:
            result.fail(f"{prefix}Field \"timeout\" must be non-negative")

    if "retries" in step:
        retries = step["retries"]
        if isinstance(retries, bool) or not isinstance(retries, int) or retries < 0:
            result.fail(f"{prefix}Field \"retries\" must be a non-negative integer")

    if "continueOnFailure" in step and not isinstance(step["continueOnFailure"], bool):
        result.fail(f"{prefix}Field \"continueOnFailure\" must be a boolean")

    if "targetState" in step and not isinstance(step["targetState"], str):
        result.fail(f"{prefix}Field \"targetState\" must be a string")

    conditions = step.get("skipConditions")
    if conditions is not None:
        if not isinstance(conditions, list):
            result.fail(f"{prefix}Field \"skipConditions\" must be an array")
        else:
            for i, condition in enumerate(conditions):
                if not isinstance(condition, dict):
                    result.fail(f"{prefix}Skip condition {i} must be an object")
                elif condition.get("requiredState"):
                    continue
                elif condition.get("type") not in SKIP_CONDITION_TYPES:
                    result.fail(
                        f"{prefix}Skip condition {i} has unknown type: {condition.get('type')!r}"
                    )
                elif not isinstance(condition.get("value"), str) or not condition["value"]:
                    result.fail(f"{prefix}Skip condition {i} needs a string value")

    states = step.get("skipNavigationStates")
    if states is not None and (
        not isinstance(states, list) or not all(isinstance(s, str) for s in states)
    ):
        result.fail(f"{prefix}Field \"skipNavigationStates\" must be an array of strings")

    return result


def validate_intent_spec(spec: Union[IntentSpec, Dict[str, Any], None]) -> ValidationResult:
    """
    Validate an intent spec document for completeness and correctness

    Args:
        spec: Parsed JSON document (or an IntentSpec)

    Returns:
        ValidationResult with errors (fatal) and warnings (unused params)
    """
    if isinstance(spec, IntentSpec):
        spec = spec.to_dict()

    result = ValidationResult()
    if not isinstance(spec, dict):
        result.fail("Intent Spec is null or not an object")
        return result

    _check_required_string(spec, "name", result)
    _check_required_string(spec, "description", result)

    url = spec.get("url")
    if not url:
        result.fail("Missing required field: url")
    elif not isinstance(url, str):
        result.fail("Field \"url\" must be a string")
    elif not _is_url(url):
        result.fail("Field \"url\" must be a valid URL")

    params = spec.get("params")
    if params is None:
        result.fail("Missing required field: params")
    elif not isinstance(params, list):
        result.fail("Field \"params\" must be an array")
    else:
        for i, param in enumerate(params):
            if not isinstance(param, str):
                result.fail(f"Parameter at index {i} must be a string")
            elif not param.strip():
                result.fail(f"Parameter at index {i} cannot be empty")
        hashable = [p for p in params if isinstance(p, str)]
        if len(set(hashable)) != len(hashable):
            result.fail("Duplicate parameters found")

    steps = spec.get("steps")
    if steps is None:
        result.fail("Missing required field: steps")
    elif not isinstance(steps, list):
        result.fail("Field \"steps\" must be an array")
    elif not steps:
        result.fail("Field \"steps\" cannot be empty")
    else:
        for i, step in enumerate(steps):
            step_result = validate_intent_step(step, i)
            for error in step_result.errors:
                result.fail(error)

    preferences = spec.get("preferences")
    if preferences is None:
        result.fail("Missing required field: preferences")
    elif not isinstance(preferences, dict):
        result.fail("Field \"preferences\" must be an object")
    else:
        for key in ("dynamic_elements", "simple_steps"):
            if key not in preferences:
                result.fail(f"Missing required preference: {key}")
        for key, value in preferences.items():
            if value not in METHOD_VALUES:
                result.fail(f"Preference \"{key}\" must be \"snippet\" or \"ai\"")

    for key in ("success_screenshot", "successCheck", "recording_spec"):
        if key in spec and spec[key] is not None and not isinstance(spec[key], str):
            result.fail(f"Field \"{key}\" must be a string")

    if isinstance(params, list) and isinstance(steps, list):
        used = extract_parameters_from_steps(steps)
        declared = {p for p in params if isinstance(p, str)}
        for name in sorted(used - declared):
            result.fail(f"undeclared parameter: {name}")
        for name in sorted(declared - used):
            result.warnings.append(f"Parameter \"{name}\" is declared but never used in steps")

    return result


def sanitize_intent_spec(spec: Any) -> Dict[str, Any]:
    """Drop invalid fields and normalize values so a near-miss document can pass validation"""
    if not isinstance(spec, dict):
        return {}

    sanitized: Dict[str, Any] = {}

    if isinstance(spec.get("name"), str) and spec["name"].strip():
        sanitized["name"] = spec["name"].strip()

    url = spec.get("url") or spec.get("startUrl")
    if isinstance(url, str) and _is_url(url.strip()):
        sanitized["url"] = url.strip()

    if isinstance(spec.get("description"), str) and spec["description"].strip():
        sanitized["description"] = spec["description"].strip()
    elif "name" in sanitized:
        sanitized["description"] = sanitized["name"]

    params: List[str] = []
    for param in spec.get("params") or []:
        if isinstance(param, str) and param.strip() and param.strip() not in params:
            params.append(param.strip())

    steps = []
    for step in spec.get("steps") or []:
        if not isinstance(step, dict):
            continue
        instruction = step.get("ai_instruction") or step.get("aiInstruction")
        if not (
            isinstance(step.get("name"), str)
            and isinstance(instruction, str)
            and isinstance(step.get("snippet"), str)
            and step.get("prefer") in METHOD_VALUES
            and step.get("fallback") in FALLBACK_VALUES
        ):
            continue

        clean = {
            "name": step["name"].strip(),
            "ai_instruction": instruction.strip(),
            "snippet": step["snippet"].strip(),
            "prefer": step["prefer"],
            "fallback": step["fallback"],
        }
        if isinstance(step.get("selector"), str) and step["selector"].strip():
            clean["selector"] = step["selector"].strip()
        if isinstance(step.get("value"), str):
            clean["value"] = step["value"]
        if isinstance(step.get("description"), str) and step["description"].strip():
            clean["description"] = step["description"].strip()
        timeout = step.get("timeout")
        if isinstance(timeout, (int, float)) and not isinstance(timeout, bool) and timeout >= 0:
            clean["timeout"] = timeout
        retries = step.get("retries")
        if isinstance(retries, int) and not isinstance(retries, bool) and retries >= 0:
            clean["retries"] = retries
        if step.get("continueOnFailure") is True:
            clean["continueOnFailure"] = True
        if isinstance(step.get("targetState"), str) and step["targetState"].strip():
            clean["targetState"] = step["targetState"].strip()
        conditions = [
            c for c in step.get("skipConditions") or []
            if isinstance(c, dict) and (
                c.get("requiredState")
                or (c.get("type") in SKIP_CONDITION_TYPES and isinstance(c.get("value"), str) and c["value"])
            )
        ]
        if conditions:
            clean["skipConditions"] = conditions
        states = [s for s in step.get("skipNavigationStates") or [] if isinstance(s, str) and s]
        if states:
            clean["skipNavigationStates"] = states
        steps.append(clean)

    if steps:
        sanitized["steps"] = steps

    sanitized["params"] = params

    preferences = spec.get("preferences") if isinstance(spec.get("preferences"), dict) else {}
    clean_preferences = {
        "dynamic_elements": preferences.get("dynamic_elements")
        if preferences.get("dynamic_elements") in METHOD_VALUES else "ai",
        "simple_steps": preferences.get("simple_steps")
        if preferences.get("simple_steps") in METHOD_VALUES else "snippet",
    }
    for key, value in preferences.items():
        if key not in clean_preferences and value in METHOD_VALUES:
            clean_preferences[key] = value
    sanitized["preferences"] = clean_preferences

    for key in ("success_screenshot", "successCheck", "recording_spec"):
        if isinstance(spec.get(key), str) and spec[key].strip():
            sanitized[key] = spec[key].strip()

    return sanitized


def parse_intent_spec(response: str) -> IntentSpec:
    """
    Parse a generated response into a validated IntentSpec

    Extracts the JSON object from the response (markdown fences and prose are
    tolerated), validates it, and attempts one sanitize-and-revalidate pass.

    Raises:
        IntentSpecValidationError: if the document is not valid JSON or is
            still invalid after sanitization
    """
    cleaned = (response or "").strip()
    match = _JSON_OBJECT.search(cleaned)
    if match:
        cleaned = match.group(0)

    try:
        document = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise IntentSpecValidationError([f"Invalid JSON response: {e}"]) from e

    validation = validate_intent_spec(document)
    if validation.valid:
        for warning in validation.warnings:
            logger.warning(warning)
        return IntentSpec.from_dict(document)

    logger.warning(f"Intent Spec validation failed: {'; '.join(validation.errors)}")
    sanitized = sanitize_intent_spec(document)
    revalidation = validate_intent_spec(sanitized)
    if not revalidation.valid:
        raise IntentSpecValidationError(revalidation.errors)

    logger.info("Recovered Intent Spec through sanitization", "🩹")
    return IntentSpec.from_dict(sanitized)
