"""
Element prober - existence, visibility and attributes of a step's target element
"""

from typing import List, Optional

from playwright.async_api import Page

from .actions import Target, target_of
from .config import MAX_ALTERNATIVE_SELECTORS, PROBE_TIMEOUT
from .logger import logger
from .models import IntentStep, TargetElement

ATTRIBUTES_SCRIPT = """
    el => {
        const attributes = {};
        for (const attr of el.attributes) {
            attributes[attr.name] = attr.value;
        }
        if ('value' in el) {
            attributes.value = el.value;
        }
        return attributes;
    }
"""


class ElementProber:
    """Probes the live page for a step's target; probing is advisory and never raises"""

    def __init__(self, ai=None, max_alternatives: int = MAX_ALTERNATIVE_SELECTORS,
                 timeout: int = PROBE_TIMEOUT):
        self.ai = ai
        self.max_alternatives = max_alternatives
        self.timeout = timeout

    @staticmethod
    def extract_target(snippet: str) -> Optional[Target]:
        return target_of(snippet)

    async def probe(self, page: Page, target: Optional[Target],
                    step: Optional[IntentStep] = None) -> Optional[TargetElement]:
        """
        Snapshot the target element

        Args:
            page: Live page
            target: Target parsed from the step snippet (None means nothing to probe)
            step: Step being analyzed, used as context when looking for alternatives

        Returns:
            TargetElement, or None when there is no target or probing failed
        """
        if target is None:
            return None

        selector = target.describe()
        try:
            element = target.locator(page)
            exists = await element.count() > 0

            if not exists:
                alternatives = await self.find_alternative_selectors(page, target, step)
                return TargetElement(
                    exists=False,
                    visible=False,
                    enabled=False,
                    selector=selector,
                    alternative_selectors=alternatives,
                )

            visible = await element.is_visible()
            enabled = await element.is_enabled()
            attributes = await element.evaluate(ATTRIBUTES_SCRIPT, timeout=self.timeout)
            return TargetElement(
                exists=True,
                visible=bool(visible),
                enabled=bool(enabled),
                selector=selector,
                attributes={str(k): str(v) for k, v in (attributes or {}).items()},
            )
        except Exception as e:
            logger.debug(f"Probe failed for {selector}: {e}")
            return None

    async def find_alternative_selectors(self, page: Page, target: Target,
                                         step: Optional[IntentStep] = None) -> List[str]:
        """Ask the AI for replacement selectors and keep the ones that resolve on the page"""
        if self.ai is None:
            return []

        context_lines = [f"URL: {page.url}", f"Missing element: {target.describe()}"]
        if step is not None:
            context_lines.append(f"Step: {step.name}")
            context_lines.append(f"Intent: {step.ai_instruction}")
        try:
            text = await page.inner_text("body")
            context_lines.append(f"Visible text:\n{text[:1000]}")
            answer = await self.ai.query(
                f"The element \"{target.describe()}\" was not found. Suggest up to "
                f"{self.max_alternatives} alternative CSS selectors for the same element "
                "as a JSON array in \"choice\".",
                "\n".join(context_lines),
            )
        except Exception as e:
            logger.debug(f"Alternative selector lookup failed: {e}")
            return []

        candidates = answer.get("choice")
        if isinstance(candidates, str):
            candidates = [candidates]
        if not isinstance(candidates, list):
            return []

        alternatives = []
        for candidate in candidates[:self.max_alternatives]:
            if not isinstance(candidate, str) or not candidate.strip():
                continue
            try:
                if await page.locator(candidate).first.count() > 0:
                    alternatives.append(candidate)
            except Exception:
                continue
        return alternatives
