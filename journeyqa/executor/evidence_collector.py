"""Evidence collector — failure screenshots, console output and API calls per step."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from playwright.async_api import Page, Response

logger = logging.getLogger(__name__)

API_RESOURCE_TYPES = ("xhr", "fetch")


def _safe_name(label: str) -> str:
    return re.sub(r"[^A-Za-z0-9_-]+", "_", label).strip("_")[:80] or "step"


class EvidenceCollector:
    """Collects evidence for one journey (one page)."""

    def __init__(self, evidence_dir: Path):
        self.evidence_dir = evidence_dir
        self.evidence_dir.mkdir(parents=True, exist_ok=True)
        self.console_logs: list[str] = []
        self.api_calls: list[dict] = []
        self._step_cursor = 0
        self._screenshot_count = 0

    def setup_listeners(self, page: Page) -> None:
        """Attach console and API response listeners to a page."""
        page.on("console", lambda msg: self.console_logs.append(
            f"[{msg.type}] {msg.text}"
        ))
        page.on("response", self._on_response)

    async def _on_response(self, response: Response) -> None:
        request = response.request
        if request.resource_type not in API_RESOURCE_TYPES:
            return
        call = {
            "url": response.url,
            "method": request.method,
            "status": response.status,
            "duration_ms": 0,
            "response_body": None,
        }
        timing = request.timing or {}
        if timing.get("responseEnd", -1) >= 0:
            call["duration_ms"] = int(timing["responseEnd"])
        if response.status >= 400:
            try:
                call["response_body"] = await response.text()
            except Exception as e:
                logger.debug("Could not read body of %s: %s", response.url, e)
        self.api_calls.append(call)

    def drain_step_calls(self) -> list[dict]:
        """API calls seen since the previous drain."""
        calls = self.api_calls[self._step_cursor:]
        self._step_cursor = len(self.api_calls)
        return calls

    async def take_screenshot(self, page: Page, label: str = "") -> str:
        """Capture a screenshot and return the file path."""
        self._screenshot_count += 1
        name = f"failure_{self._screenshot_count}_{_safe_name(label)}.png"
        path = self.evidence_dir / name
        try:
            await page.screenshot(path=str(path), full_page=True)
            return str(path)
        except Exception as e:
            logger.warning("Screenshot failed: %s", e)
            return ""

    def save_logs(self) -> None:
        """Persist collected logs to files."""
        console_path = self.evidence_dir / "console.log"
        with open(console_path, "w", encoding="utf-8") as f:
            f.write("\n".join(self.console_logs))

        network_path = self.evidence_dir / "api_calls.json"
        with open(network_path, "w", encoding="utf-8") as f:
            json.dump(self.api_calls, f, indent=2)
