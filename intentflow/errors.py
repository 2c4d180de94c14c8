"""
Error taxonomy for intent spec analysis and step execution
"""


class IntentFlowError(Exception):
    """Base class for all intentflow errors"""


class AnalysisFailure(IntentFlowError):
    """Pre-flight analysis raised; the step continues with a degraded analysis"""


class ElementNotFound(IntentFlowError):
    """A fragment's target did not resolve to any element on the page"""

    def __init__(self, selector: str):
        super().__init__(f"Element not found: {selector}")
        self.selector = selector


class UnsupportedFragment(IntentFlowError):
    """No action pattern matched the snippet fragment"""

    def __init__(self, fragment: str):
        preview = fragment if len(fragment) <= 100 else fragment[:100] + "..."
        super().__init__(f"Unsupported snippet fragment: {preview}")
        self.fragment = fragment


class AIDelegationFailure(IntentFlowError):
    """The AI collaborator errored, timed out, or returned unusable output"""


class UnboundParameterError(IntentFlowError):
    """A {{NAME}} token had no binding at execution time"""

    def __init__(self, names):
        self.names = sorted(set(names))
        super().__init__(
            "Unbound parameter(s): " + ", ".join(self.names)
        )


class StepFailure(IntentFlowError):
    """A step failed after exhausting retries and fallback"""

    def __init__(self, step_name: str, message: str, method: str = ""):
        super().__init__(f"Step \"{step_name}\" failed: {message}")
        self.step_name = step_name
        self.method = method


class IntentSpecValidationError(IntentFlowError):
    """An intent spec document did not satisfy the structural contract"""

    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("Invalid intent spec: " + "; ".join(self.errors))


class AnalysisRetryExhausted(IntentFlowError):
    """Recording analysis failed on every attempt"""

    def __init__(self, attempts: int, last_error: Exception):
        super().__init__(
            f"Analysis failed after {attempts} attempts. Last error: {last_error}"
        )
        self.attempts = attempts
        self.last_error = last_error
