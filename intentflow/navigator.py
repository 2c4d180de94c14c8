"""
Navigator - Browser lifecycle for flow runs
Uses Playwright with Chrome and persistent storage state
"""

import os
from typing import Optional

from playwright.async_api import async_playwright, Browser, BrowserContext, Page, Playwright

from .config import BROWSER_STORAGE_PATH, HEADLESS, NAVIGATION_TIMEOUT, SLOW_MO
from .logger import logger

LAUNCH_ARGS = [
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-setuid-sandbox",
]

INTERACTIVE_ELEMENTS_SCRIPT = """
    () => {
        const elements = { buttons: [], inputs: [], selects: [] };

        document.querySelectorAll('button, [role="button"], input[type="submit"], a[href]').forEach(el => {
            const text = (el.textContent || el.value || '').trim().substring(0, 100);
            const ariaLabel = el.getAttribute('aria-label') || '';
            const id = el.getAttribute('id') || '';
            const dataTestId = el.getAttribute('data-testid') || '';
            if (!text && !ariaLabel && !id) return;
            elements.buttons.push({
                text: text,
                ariaLabel: ariaLabel,
                id: id,
                dataTestId: dataTestId,
                tag: el.tagName,
                visible: el.offsetParent !== null,
                selectors: {
                    text: text ? `text=${text.substring(0, 50)}` : null,
                    ariaLabel: ariaLabel ? `[aria-label="${ariaLabel}"]` : null,
                    id: id ? `#${id}` : null,
                    dataTestId: dataTestId ? `[data-testid="${dataTestId}"]` : null
                }
            });
        });

        document.querySelectorAll('input:not([type="hidden"]):not([type="submit"]), textarea, [contenteditable="true"]').forEach(el => {
            const type = el.getAttribute('type') || (el.tagName === 'TEXTAREA' ? 'textarea' : 'text');
            const name = el.getAttribute('name') || '';
            const id = el.getAttribute('id') || '';
            const placeholder = el.getAttribute('placeholder') || '';
            const ariaLabel = el.getAttribute('aria-label') || '';
            const label = el.labels && el.labels.length ? el.labels[0].textContent.trim() : '';
            elements.inputs.push({
                type: type,
                name: name,
                id: id,
                placeholder: placeholder,
                ariaLabel: ariaLabel,
                label: label,
                hasValue: type === 'password' ? !!el.value : undefined,
                value: type === 'password' ? '' : (el.value || el.textContent || '').substring(0, 100),
                visible: el.offsetParent !== null,
                selectors: {
                    name: name ? `[name="${name}"]` : null,
                    id: id ? `#${id}` : null,
                    placeholder: placeholder ? `[placeholder="${placeholder}"]` : null,
                    ariaLabel: ariaLabel ? `[aria-label="${ariaLabel}"]` : null
                }
            });
        });

        document.querySelectorAll('select').forEach(el => {
            const name = el.getAttribute('name') || '';
            const id = el.getAttribute('id') || '';
            elements.selects.push({
                name: name,
                id: id,
                options: Array.from(el.options).slice(0, 20).map(opt => ({ value: opt.value, text: opt.text })),
                visible: el.offsetParent !== null,
                selectors: {
                    name: name ? `[name="${name}"]` : null,
                    id: id ? `#${id}` : null
                }
            });
        });

        return elements;
    }
"""


async def extract_interactive_elements(page: Page) -> dict:
    """Extract buttons, inputs and selects from the page with their candidate selectors"""
    try:
        elements = await page.evaluate(INTERACTIVE_ELEMENTS_SCRIPT)
    except Exception as e:
        logger.warning(f"Error extracting elements: {e}")
        return {}
    return elements if isinstance(elements, dict) else {}


class Navigator:
    """Owns the browser, context and page for one flow run"""

    def __init__(self, storage_path: str = BROWSER_STORAGE_PATH, headless: bool = HEADLESS,
                 slow_mo: int = SLOW_MO, channel: Optional[str] = "chrome"):
        self.storage_path = storage_path
        self.headless = headless
        self.slow_mo = slow_mo
        self.channel = channel
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    @property
    def state_file(self) -> str:
        return os.path.join(self.storage_path, "state.json")

    async def initialize(self) -> Page:
        """Launch the browser, restoring saved cookies and local storage when present"""
        logger.info("Launching Chrome browser...", "🌐")

        self.playwright = await async_playwright().start()

        launch_options = {
            "headless": self.headless,
            "slow_mo": self.slow_mo,
            "args": LAUNCH_ARGS,
        }
        if self.channel:
            launch_options["channel"] = self.channel
        self.browser = await self.playwright.chromium.launch(**launch_options)

        os.makedirs(self.storage_path, exist_ok=True)
        self.context = await self.browser.new_context(
            viewport={"width": 1920, "height": 1080},
            locale="en-US",
            storage_state=self.state_file if os.path.exists(self.state_file) else None,
        )
        self.context.set_default_navigation_timeout(NAVIGATION_TIMEOUT)

        self.page = await self.context.new_page()
        logger.success("Browser initialized")
        return self.page

    async def close(self):
        """Close the browser and save state"""
        if self.context:
            os.makedirs(self.storage_path, exist_ok=True)
            try:
                await self.context.storage_state(path=self.state_file)
                logger.info(f"Browser state saved to {self.state_file}", "💾")
            except Exception as e:
                logger.warning(f"Could not save browser state: {e}")

        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.page = self.context = self.browser = self.playwright = None
        logger.info("Browser closed", "🔒")

    async def __aenter__(self) -> Page:
        return await self.initialize()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
