"""
ScreenshotCapture - Evidence screenshots for failed steps and final flow state
"""

import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from playwright.async_api import Page

from .config import SCREENSHOTS_DIR
from .logger import logger


class ScreenshotCapture:
    """Writes numbered full-page screenshots into one directory"""

    def __init__(self, directory: Path = SCREENSHOTS_DIR):
        self.screenshot_dir = Path(directory)
        self.counter = 0

    async def capture(self, page: Page, description: str, capture_type: str = "state") -> Optional[dict]:
        """
        Capture a screenshot of the current page

        Args:
            page: Playwright page object
            description: Description of the state
            capture_type: Type of capture (failure, final)

        Returns:
            Screenshot metadata dictionary, or None if the capture failed
        """
        self.screenshot_dir.mkdir(parents=True, exist_ok=True)
        self.counter += 1

        timestamp = int(datetime.now().timestamp() * 1000)
        sanitized_description = re.sub(r"[^a-z0-9]+", "-", description.lower()).strip("-")[:50]
        filepath = self.screenshot_dir / f"{self.counter}-{capture_type}-{sanitized_description}-{timestamp}.png"

        try:
            await page.screenshot(path=str(filepath), full_page=True, animations="disabled")
        except Exception as e:
            logger.warning(f"Could not capture screenshot for {description}: {e}")
            return None

        logger.info(f"Captured: {description} ({capture_type})", "📸")
        return {
            "path": str(filepath),
            "description": description,
            "type": capture_type,
            "timestamp": datetime.now().isoformat(),
            "counter": self.counter,
        }

    def reset(self):
        """Reset counter for a new run"""
        self.counter = 0
