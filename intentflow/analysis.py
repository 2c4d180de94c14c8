"""
Recording analysis - turns a recorded session into an Intent Spec with bounded retries
"""

import asyncio
import json
import os
from typing import Any, Awaitable, Callable, Optional

from groq import AsyncGroq

from .config import AI_TIMEOUT, ANALYSIS_RETRY_DELAY, GROQ_MODEL, MAX_ANALYSIS_ATTEMPTS
from .errors import AIDelegationFailure, AnalysisRetryExhausted
from .logger import logger
from .models import IntentSpec
from .validator import parse_intent_spec

Generator = Callable[[Any], Awaitable[str]]

RECORDING_EVENT_LIMIT = 200
SENSITIVE_FIELD_MARKERS = ("password", "passwd", "secret", "token")


def _describe_event(index: int, event: Any) -> str:
    if not isinstance(event, dict):
        return f"{index}. {event}"

    kind = event.get("type") or event.get("action") or "event"
    parts = [f"{index}. {kind}"]
    for key in ("url", "selector", "target", "role", "name", "label", "text", "key"):
        if event.get(key):
            parts.append(f"{key}={json.dumps(event[key])}")

    value = event.get("value")
    if value is not None:
        field_hint = " ".join(str(event.get(k, "")) for k in ("selector", "name", "inputType")).lower()
        if any(marker in field_hint for marker in SENSITIVE_FIELD_MARKERS):
            value = "<redacted>"
        parts.append(f"value={json.dumps(value)}")
    return " ".join(parts)


def serialize_recording(recording: Any) -> str:
    """
    Compact text form of a recording for the generation prompt

    Accepts a list of events or a dict holding them under "actions", "events"
    or "steps"; an optional "url" / "startUrl" is emitted first.
    """
    start_url = None
    events = recording
    if isinstance(recording, dict):
        start_url = recording.get("url") or recording.get("startUrl")
        events = recording.get("actions") or recording.get("events") or recording.get("steps") or []
    if isinstance(events, str):
        return events

    lines = []
    if start_url:
        lines.append(f"Start URL: {start_url}")
    events = list(events or [])
    for index, event in enumerate(events[:RECORDING_EVENT_LIMIT], start=1):
        lines.append(_describe_event(index, event))
    if len(events) > RECORDING_EVENT_LIMIT:
        lines.append(f"... {len(events) - RECORDING_EVENT_LIMIT} more events omitted")
    return "\n".join(lines)


class GroqIntentSpecGenerator:
    """Asks Groq to write an Intent Spec JSON document for a recording"""

    def __init__(self, client: Optional[AsyncGroq] = None, model: str = GROQ_MODEL,
                 temperature: float = 0.0, timeout: float = AI_TIMEOUT):
        self.client = client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    def build_prompt(self, recording: Any) -> str:
        return f"""Convert this recorded browser session into a reusable Intent Spec.

Recorded actions:
{serialize_recording(recording)}

Rules:
- Every step has BOTH a "snippet" (one deterministic action) and an "ai_instruction" (the same outcome in plain language)
- A snippet performs exactly ONE operation, using one of these forms:
    await page.goto('<url>')
    await page.click('<css selector>')
    await page.fill('<css selector>', '<value>')
    await page.getByRole('<role>', {{ name: '<name>' }}).click()
    await page.getByLabel('<label>').fill('<value>')
    await page.waitForSelector('<css selector>')
- Replace user-specific input (emails, passwords, search terms, names) with {{{{PARAM_NAME}}}} tokens and list every token name in "params"
- "prefer" is "snippet" for stable selectors and "ai" for dynamic content; "fallback" is "ai", "snippet" or "none"
- Name verification steps starting with "Verify" or "Check"
- Add "continueOnFailure": true only for optional steps (cookie banners, popups)
- Login steps may declare "skipConditions": [{{"requiredState": "authenticated_area"}}]

Respond with JSON:
{{
  "name": "short flow name",
  "description": "what the flow accomplishes",
  "url": "starting URL",
  "params": ["PARAM_NAME"],
  "steps": [
    {{
      "name": "Enter email",
      "ai_instruction": "Type {{{{EMAIL}}}} into the email field",
      "snippet": "await page.fill('#email', '{{{{EMAIL}}}}')",
      "prefer": "snippet",
      "fallback": "ai",
      "value": "{{{{EMAIL}}}}"
    }}
  ],
  "preferences": {{"dynamic_elements": "ai", "simple_steps": "snippet"}},
  "successCheck": "how to tell the flow succeeded"
}}"""

    async def __call__(self, recording: Any) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": "You are a helpful assistant that creates replayable web automation specs. Always respond with valid JSON only."},
                        {"role": "user", "content": self.build_prompt(recording)},
                    ],
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AIDelegationFailure(f"Intent Spec generation timed out after {self.timeout}s") from e

        content = response.choices[0].message.content
        if not content:
            raise AIDelegationFailure("Intent Spec generation returned an empty response")
        return content


class AnalysisRetryController:
    """Bounded retries with exponential backoff around recording analysis"""

    def __init__(self, generator: Generator, max_attempts: int = MAX_ANALYSIS_ATTEMPTS,
                 base_delay: float = ANALYSIS_RETRY_DELAY,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        self.generator = generator
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep

    async def analyze_recording(self, recording: Any) -> IntentSpec:
        """
        Generate and validate an Intent Spec for a recording

        Each attempt generates a document, extracts its JSON object and
        validates it (with one sanitize-and-revalidate pass). Attempts are
        separated by base_delay * 2 ** (attempt - 1) seconds.

        Raises:
            AnalysisRetryExhausted: if every attempt failed
        """
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                response = await self.generator(recording)
                spec = parse_intent_spec(response)
            except Exception as e:
                last_error = e
                logger.warning(f"Analysis attempt {attempt}/{self.max_attempts} failed: {e}")
                if attempt < self.max_attempts:
                    delay = self.base_delay * 2 ** (attempt - 1)
                    logger.info(f"Retrying in {delay:.1f}s...", "⏳")
                    await self.sleep(delay)
                continue

            if attempt > 1:
                logger.success(f"Analysis succeeded on attempt {attempt}")
            return spec

        raise AnalysisRetryExhausted(self.max_attempts, last_error)
