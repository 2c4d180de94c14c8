"""
AI collaborator - act / extract / query over the Groq chat completions API
"""

import asyncio
import json
import os
from typing import Any, Dict, List, Optional

from groq import AsyncGroq
from playwright.async_api import Page

from .actions import ActionInterpreter
from .config import AI_TIMEOUT, GROQ_MODEL, GROQ_TEMPERATURE, PAGE_TEXT_LIMIT
from .errors import AIDelegationFailure
from .logger import logger
from .navigator import extract_interactive_elements

ACT_SYSTEM_PROMPT = (
    "You are a web automation expert that turns an instruction into exactly one browser action. "
    "Always respond with valid JSON only. Be precise with selectors."
)
EXTRACT_SYSTEM_PROMPT = (
    "You extract structured information from web page content. Always respond with valid JSON only."
)
QUERY_SYSTEM_PROMPT = (
    "You answer questions about the current state of a web page. Always respond with valid JSON only."
)


def summarize_elements(elements: dict, limit: int = 15) -> str:
    """Prompt-friendly summary of the visible interactive elements"""
    parts = []

    buttons = [b for b in elements.get("buttons", []) if b.get("visible")]
    if buttons:
        parts.append("Buttons:")
        for btn in buttons[:limit]:
            text = (btn.get("text") or "").strip()[:50]
            selectors = ", ".join(v for v in (btn.get("selectors") or {}).values() if v)
            parts.append(f"  - Text: '{text}', Aria-label: '{btn.get('ariaLabel', '')}', Selectors: {selectors}")

    inputs = [i for i in elements.get("inputs", []) if i.get("visible")]
    if inputs:
        parts.append("Input fields:")
        for inp in inputs[:limit]:
            selectors = ", ".join(v for v in (inp.get("selectors") or {}).values() if v)
            parts.append(
                f"  - Type: {inp.get('type', '')}, Name: {inp.get('name', '')}, "
                f"Label: '{inp.get('label', '')}', Placeholder: '{inp.get('placeholder', '')}', "
                f"Selectors: {selectors}"
            )

    selects = [s for s in elements.get("selects", []) if s.get("visible")]
    if selects:
        parts.append("Select fields:")
        for sel in selects[:limit]:
            selectors = ", ".join(v for v in (sel.get("selectors") or {}).values() if v)
            options = ", ".join(o.get("text", "") for o in sel.get("options", [])[:10])
            parts.append(f"  - Name: {sel.get('name', '')}, Options: {options}, Selectors: {selectors}")

    return "\n".join(parts) if parts else "No interactive elements found"


def _format_context(context: Optional[Dict[str, Any]]) -> str:
    if not context:
        return "None"
    return json.dumps(context, indent=2, default=str)


def _confidence(value: Any) -> float:
    if isinstance(value, str):
        value = {"high": 0.9, "medium": 0.6, "low": 0.3}.get(value.lower(), value)
    try:
        return max(0.0, min(1.0, float(value)))
    except (TypeError, ValueError):
        return 0.0


class AIAgent:
    """AI collaborator for one flow run"""

    def __init__(self, client: Optional[AsyncGroq] = None, model: str = GROQ_MODEL,
                 temperature: float = GROQ_TEMPERATURE, timeout: float = AI_TIMEOUT,
                 interpreter: Optional[ActionInterpreter] = None):
        self.client = client or AsyncGroq(api_key=os.getenv("GROQ_API_KEY"))
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        # AI-proposed fragments never go through raw evaluation
        self.interpreter = interpreter or ActionInterpreter(allow_raw=False)

    async def _complete_json(self, system_prompt: str, prompt: str) -> dict:
        try:
            response = await asyncio.wait_for(
                self.client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self.temperature,
                    response_format={"type": "json_object"},
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise AIDelegationFailure(f"AI call timed out after {self.timeout}s") from e
        except Exception as e:
            raise AIDelegationFailure(f"AI call failed: {e}") from e

        try:
            payload = json.loads(response.choices[0].message.content)
        except (AttributeError, IndexError, TypeError, json.JSONDecodeError) as e:
            raise AIDelegationFailure(f"AI returned unparseable output: {e}") from e
        if not isinstance(payload, dict):
            raise AIDelegationFailure("AI returned a non-object JSON payload")
        return payload

    async def act(self, page: Page, instruction: str, context: Optional[Dict[str, Any]] = None,
                  timeout: Optional[int] = None) -> dict:
        """
        Carry out a natural-language instruction on the page

        The model picks one action fragment from the visible interactive
        elements; the fragment is then run through the action interpreter.

        Args:
            page: Live page
            instruction: What to do, in plain language
            context: Extra context (page content, alternative selectors, step value)
            timeout: Per-operation deadline in milliseconds

        Returns:
            {"success": True, "fragment": ..., "reason": ...}
        """
        elements = await extract_interactive_elements(page)
        prompt = f"""Instruction: {instruction}

Current URL: {page.url}

Available elements on the page:
{summarize_elements(elements)}

Additional context:
{_format_context(context)}

Choose exactly ONE action that carries out the instruction. Use one of these forms:
- navigate <url>
- click <css selector>
- fill <css selector> with <value>
- press <key> on <css selector>
- wait <css selector>
- page.getByRole('<role>', {{ name: '<name>' }}).click()
- page.getByLabel('<label>').fill('<value>')

Respond with JSON:
{{
  "action": "the single action, or null if the instruction cannot be carried out on this page",
  "reason": "why this action matches the instruction"
}}"""

        suggestion = await self._complete_json(ACT_SYSTEM_PROMPT, prompt)
        fragment = suggestion.get("action")
        if not fragment or not isinstance(fragment, str):
            raise AIDelegationFailure(
                f"AI could not determine an action: {suggestion.get('reason', 'no reason given')}"
            )

        logger.ai(f"AI action: {fragment}")
        await self.interpreter.execute(page, fragment, timeout)
        return {"success": True, "fragment": fragment, "reason": suggestion.get("reason")}

    async def extract(self, page: Page, instruction: str, context: Optional[Dict[str, Any]] = None) -> dict:
        """Extract structured data described by the instruction from the visible page text"""
        text = (await page.inner_text("body"))[:PAGE_TEXT_LIMIT * 4]
        prompt = f"""{instruction}

Current URL: {page.url}

Additional context:
{_format_context(context)}

Page text:
{text}

Respond with a JSON object holding the extracted data under "data"."""

        payload = await self._complete_json(EXTRACT_SYSTEM_PROMPT, prompt)
        return payload.get("data", payload)

    async def query(self, question: str, context: str = "", choices: Optional[List[str]] = None) -> dict:
        """
        Ask a question about the page

        Returns:
            {"choice": ..., "confidence": float in [0, 1], "rationale": str}
        """
        options = f"\nChoose one of: {', '.join(choices)}" if choices else ""
        prompt = f"""{question}{options}

Context:
{context or 'None'}

Respond with JSON:
{{
  "choice": "your answer",
  "confidence": 0.0 to 1.0,
  "rationale": "short explanation"
}}"""

        payload = await self._complete_json(QUERY_SYSTEM_PROMPT, prompt)
        if "choice" not in payload:
            raise AIDelegationFailure("AI answer is missing \"choice\"")
        return {
            "choice": payload["choice"],
            "confidence": _confidence(payload.get("confidence")),
            "rationale": str(payload.get("rationale", "")),
        }
