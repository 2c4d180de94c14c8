"""
Data models for intent specs, pre-flight analyses and execution results

Field names follow the intent spec JSON document (camelCase where the document
uses it); to_dict() always produces the document shape.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class ExecutionMethod(str, Enum):
    """How a step is realized on the page"""
    SNIPPET = "snippet"
    AI = "ai"
    HYBRID = "hybrid"


@dataclass
class SkipCondition:
    """A declared condition meaning the step's outcome is already in place"""

    type: str = ""
    value: str = ""
    skip_reason: Optional[str] = None
    required_state: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SkipCondition":
        return cls(
            type=str(payload.get("type", "") or ""),
            value=str(payload.get("value", "") or ""),
            skip_reason=payload.get("skipReason"),
            required_state=payload.get("requiredState"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.type:
            data["type"] = self.type
            data["value"] = self.value
        if self.skip_reason:
            data["skipReason"] = self.skip_reason
        if self.required_state:
            data["requiredState"] = self.required_state
        return data


@dataclass
class IntentStep:
    """One dual-path step: a snippet and an AI instruction for the same outcome"""

    name: str
    ai_instruction: str
    snippet: str
    prefer: str = "snippet"
    fallback: str = "ai"
    selector: Optional[str] = None
    value: Optional[str] = None
    timeout: Optional[int] = None
    retries: Optional[int] = None
    continue_on_failure: bool = False
    description: Optional[str] = None
    target_state: Optional[str] = None
    skip_conditions: List[SkipCondition] = field(default_factory=list)
    skip_navigation_states: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IntentStep":
        return cls(
            name=payload.get("name", ""),
            ai_instruction=payload.get("ai_instruction") or payload.get("aiInstruction") or "",
            snippet=payload.get("snippet", ""),
            prefer=payload.get("prefer", "snippet"),
            fallback=payload.get("fallback", "ai"),
            selector=payload.get("selector"),
            value=payload.get("value"),
            timeout=payload.get("timeout"),
            retries=payload.get("retries"),
            continue_on_failure=payload.get("continueOnFailure") is True,
            description=payload.get("description"),
            target_state=payload.get("targetState"),
            skip_conditions=[
                SkipCondition.from_dict(c)
                for c in payload.get("skipConditions") or []
                if isinstance(c, dict)
            ],
            skip_navigation_states=[
                s for s in payload.get("skipNavigationStates") or [] if isinstance(s, str)
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "ai_instruction": self.ai_instruction,
            "snippet": self.snippet,
            "prefer": self.prefer,
            "fallback": self.fallback,
        }
        optional = {
            "selector": self.selector,
            "value": self.value,
            "timeout": self.timeout,
            "retries": self.retries,
            "description": self.description,
            "targetState": self.target_state,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.continue_on_failure:
            data["continueOnFailure"] = True
        if self.skip_conditions:
            data["skipConditions"] = [c.to_dict() for c in self.skip_conditions]
        if self.skip_navigation_states:
            data["skipNavigationStates"] = list(self.skip_navigation_states)
        return data


@dataclass
class IntentSpec:
    """A parameterized, replayable automation procedure"""

    name: str
    description: str
    url: str
    params: List[str] = field(default_factory=list)
    steps: List[IntentStep] = field(default_factory=list)
    preferences: Dict[str, str] = field(default_factory=dict)
    success_check: Optional[str] = None
    success_screenshot: Optional[str] = None
    recording_spec: Optional[str] = None

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "IntentSpec":
        return cls(
            name=payload.get("name", ""),
            description=payload.get("description", ""),
            url=payload.get("url", ""),
            params=list(payload.get("params") or []),
            steps=[IntentStep.from_dict(s) for s in payload.get("steps") or [] if isinstance(s, dict)],
            preferences=dict(payload.get("preferences") or {}),
            success_check=payload.get("successCheck"),
            success_screenshot=payload.get("success_screenshot"),
            recording_spec=payload.get("recording_spec"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "url": self.url,
            "params": list(self.params),
            "steps": [s.to_dict() for s in self.steps],
            "preferences": dict(self.preferences),
        }
        if self.success_check:
            data["successCheck"] = self.success_check
        if self.success_screenshot:
            data["success_screenshot"] = self.success_screenshot
        if self.recording_spec:
            data["recording_spec"] = self.recording_spec
        return data


@dataclass
class PageState:
    url: str
    title: str
    ready_state: str
    has_errors: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "readyState": self.ready_state,
            "hasErrors": self.has_errors,
        }


@dataclass
class TargetElement:
    exists: bool
    visible: bool
    enabled: bool
    selector: str
    alternative_selectors: List[str] = field(default_factory=list)
    attributes: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "exists": self.exists,
            "visible": self.visible,
            "enabled": self.enabled,
            "selector": self.selector,
        }
        if self.alternative_selectors:
            data["alternativeSelectors"] = list(self.alternative_selectors)
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        return data


@dataclass
class SkipRecommendation:
    should_skip: bool = False
    reason: Optional[str] = None
    confidence: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"shouldSkip": self.should_skip, "confidence": self.confidence}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class Strategy:
    """Chosen execution method for a step, with an optional single fallback"""

    method: ExecutionMethod
    reason: str
    fallback_method: Optional[ExecutionMethod] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"method": self.method.value, "reason": self.reason}
        if self.fallback_method is not None:
            data["fallbackMethod"] = self.fallback_method.value
        return data


@dataclass
class PageContent:
    """Bounded page snapshot handed to the AI as context"""

    relevant_text: str = ""
    form_fields: List[Dict[str, Any]] = field(default_factory=list)
    buttons: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relevantText": self.relevant_text,
            "formFields": list(self.form_fields),
            "buttons": list(self.buttons),
        }


@dataclass
class PreFlightAnalysis:
    page_state: PageState
    target_element: Optional[TargetElement]
    skip_recommendation: SkipRecommendation
    execution_strategy: Strategy
    page_content: Optional[PageContent] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "pageState": self.page_state.to_dict(),
            "targetElement": self.target_element.to_dict() if self.target_element else None,
            "skipRecommendation": self.skip_recommendation.to_dict(),
            "executionStrategy": self.execution_strategy.to_dict(),
        }
        if self.page_content is not None:
            data["pageContent"] = self.page_content.to_dict()
        return data


@dataclass
class Verdict:
    """Answer from one state-detector tier"""

    matches: bool
    confidence: float
    source: str
    reason: str = ""


@dataclass
class StepResult:
    step_name: str
    success: bool
    skipped: bool = False
    skip_reason: Optional[str] = None
    execution_method: Optional[ExecutionMethod] = None
    duration: float = 0.0
    error: Optional[str] = None
    data: Any = None
    attempts: int = 0
    fragment: Optional[str] = None
    fallback_used: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "step": self.step_name,
            "success": self.success,
            "skipped": self.skipped,
            "executionMethod": self.execution_method.value if self.execution_method else None,
            "duration": round(self.duration, 3),
            "attempts": self.attempts,
            "fallbackUsed": self.fallback_used,
        }
        if self.skip_reason:
            data["skipReason"] = self.skip_reason
        if self.error:
            data["error"] = self.error
        if self.fragment is not None:
            data["fragment"] = self.fragment
        if self.data is not None:
            data["data"] = self.data
        return data


@dataclass
class FlowProgress:
    """Progress event emitted by the flow runner"""

    current_step: int
    total_steps: int
    step_name: str
    status: str  # executing | completed | skipped | failed
    message: str = ""


@dataclass
class FlowResult:
    success: bool
    results: List[StepResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    stats: Dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0
    success_check: Optional[Dict[str, Any]] = None
    navigation_error: Optional[str] = None
    recommendations: List[str] = field(default_factory=list)
    screenshots: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "success": self.success,
            "results": [r.to_dict() for r in self.results],
            "errors": list(self.errors),
            "stats": dict(self.stats),
            "duration": round(self.duration, 3),
            "recommendations": list(self.recommendations),
        }
        if self.success_check is not None:
            data["successCheck"] = self.success_check
        if self.navigation_error:
            data["navigationError"] = self.navigation_error
        if self.screenshots:
            data["screenshots"] = list(self.screenshots)
        return data
