"""
Configuration constants and settings
"""

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# API Configuration
GROQ_MODEL = os.getenv("GROQ_MODEL", "llama-3.1-8b-instant")
GROQ_TEMPERATURE = float(os.getenv("GROQ_TEMPERATURE", "0.2"))
AI_TIMEOUT = float(os.getenv("INTENTFLOW_AI_TIMEOUT", "60"))  # seconds

# Browser Configuration
BROWSER_STORAGE_PATH = os.getenv("BROWSER_STORAGE_PATH", "browser_storage")
HEADLESS = os.getenv("HEADLESS", "false").lower() == "true"
SLOW_MO = int(os.getenv("SLOW_MO", "100"))

# Paths
SCREENSHOTS_DIR = Path(os.getenv("INTENTFLOW_SCREENSHOTS_DIR", "screenshots"))

# Timeouts (in milliseconds)
NAVIGATION_TIMEOUT = 30000
DEFAULT_STEP_TIMEOUT = int(os.getenv("INTENTFLOW_STEP_TIMEOUT", "10000"))
PROBE_TIMEOUT = 1000

# Step execution
STEP_DELAY = 0.5  # seconds between steps
ALLOW_RAW_SNIPPETS = os.getenv("INTENTFLOW_ALLOW_RAW_SNIPPETS", "false").lower() == "true"
MAX_ALTERNATIVE_SELECTORS = 3
MIN_STATE_SKIP_CONFIDENCE = 0.5

# Page content limits (characters)
PAGE_TEXT_LIMIT = 1000
STATE_TEXT_LIMIT = 2000

# Analysis retry configuration
MAX_ANALYSIS_ATTEMPTS = 3
ANALYSIS_RETRY_DELAY = 1.0  # seconds, doubled after every failed attempt


@dataclass
class ExecutionSettings:
    """Per-run settings handed to the flow runner and its collaborators"""

    step_timeout: int = DEFAULT_STEP_TIMEOUT
    step_delay: float = STEP_DELAY
    allow_raw_snippets: bool = ALLOW_RAW_SNIPPETS
    max_alternative_selectors: int = MAX_ALTERNATIVE_SELECTORS
    min_state_skip_confidence: float = MIN_STATE_SKIP_CONFIDENCE
    page_text_limit: int = PAGE_TEXT_LIMIT
    state_text_limit: int = STATE_TEXT_LIMIT
    capture_screenshots: bool = False
