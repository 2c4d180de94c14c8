"""
Variable bindings: {{NAME}} substitution into step fields
"""

import re
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Set

from .errors import UnboundParameterError
from .models import IntentStep

PARAM_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

# Step fields that may carry {{NAME}} tokens
BINDABLE_FIELDS = ("snippet", "ai_instruction", "selector", "value")


def find_parameters(text: Optional[str]) -> List[str]:
    """Names referenced by {{NAME}} tokens in text, in order of appearance"""
    if not text or not isinstance(text, str):
        return []
    return [match.strip() for match in PARAM_PATTERN.findall(text)]


def substitute(text: Optional[str], bindings: Dict[str, str]) -> Optional[str]:
    """Replace bound {{NAME}} tokens; unbound tokens are left in place"""
    if not text or not bindings:
        return text

    def _replace(match: re.Match) -> str:
        name = match.group(1).strip()
        if name in bindings:
            return str(bindings[name])
        return match.group(0)

    return PARAM_PATTERN.sub(_replace, text)


def render_step(step: IntentStep, bindings: Dict[str, str]) -> IntentStep:
    """Copy of the step with bindings substituted into every bindable field"""
    return replace(
        step,
        **{name: substitute(getattr(step, name), bindings) for name in BINDABLE_FIELDS},
    )


def step_parameters(steps: Iterable[IntentStep]) -> Set[str]:
    names: Set[str] = set()
    for step in steps:
        for name in BINDABLE_FIELDS:
            names.update(find_parameters(getattr(step, name)))
    return names


def unbound_parameters(step: IntentStep) -> List[str]:
    """Tokens still present in a rendered step"""
    return sorted(step_parameters([step]))


def ensure_bound(step: IntentStep) -> None:
    missing = unbound_parameters(step)
    if missing:
        raise UnboundParameterError(missing)
