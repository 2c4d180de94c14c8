"""
intentflow - replayable browser automation from recorded sessions

A recorded session is turned into an Intent Spec: parameterized steps that
each carry a deterministic snippet and a natural-language AI instruction for
the same outcome. Replaying a spec:
- Inspects the page before every step (pre-flight analysis)
- Skips steps whose outcome is already in place
- Runs the snippet or delegates to the AI, falling back between them
- Reports per-step results, stats and recommendations
"""

__version__ = "1.0.0"

from .analysis import AnalysisRetryController, GroqIntentSpecGenerator
from .ai import AIAgent
from .config import ExecutionSettings
from .executor import StepExecutor
from .models import FlowResult, IntentSpec, IntentStep, PreFlightAnalysis, StepResult
from .navigator import Navigator
from .preflight import PreFlightAnalyzer
from .runner import FlowRunner
from .validator import validate_intent_spec

__all__ = [
    "AIAgent",
    "AnalysisRetryController",
    "ExecutionSettings",
    "FlowResult",
    "FlowRunner",
    "GroqIntentSpecGenerator",
    "IntentSpec",
    "IntentStep",
    "Navigator",
    "PreFlightAnalysis",
    "PreFlightAnalyzer",
    "StepExecutor",
    "StepResult",
    "validate_intent_spec",
]
