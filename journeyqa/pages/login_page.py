"""Login page object — email plus one-time code from the mailbox."""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence

from journeyqa.executor.fallback import (
    ActionPolicy,
    JourneyError,
    click_first,
    fill_first,
    probe,
)
from journeyqa.mail.otp_client import GmailOtpClient
from journeyqa.pages.base_page import BasePage

logger = logging.getLogger(__name__)

OTP_FIELDS = ("Please enter verification", "Digit 2", "Digit 3", "Digit 4")


class OtpNotReceivedError(JourneyError):
    pass


class LoginPage(BasePage):
    EMAIL_INPUT = "#userEmail"
    ACCOUNT_BUTTONS: Sequence[str] = ("#account button",)
    SINGLE_OTP_INPUTS: Sequence[str] = (
        'input[autocomplete="one-time-code"]',
        'input[name="otp"]',
        'input[placeholder*="OTP" i]',
    )

    def __init__(self, page, config, collector=None, otp_client: Optional[GmailOtpClient] = None):
        super().__init__(page, config, collector)
        self.otp_client = otp_client

    async def open_login_drawer(self) -> None:
        if await probe(self.page, self.EMAIL_INPUT, timeout_ms=1000):
            return
        await click_first(
            self.page,
            [*self.ACCOUNT_BUTTONS, self.page.get_by_role("button", name="Hi Guest")],
            ActionPolicy.REQUIRED, action="account menu", timeout_ms=self.timeout,
        )
        await click_first(
            self.page,
            [self.page.locator("#popOver span").filter(has_text=re.compile("Login|Register", re.I))],
            ActionPolicy.OPTIONAL, action="login menu entry", timeout_ms=self.probe_timeout,
        )

    async def submit_email(self, email: str) -> None:
        await self.remove_overlays()
        field = self.page.locator(self.EMAIL_INPUT)
        await field.wait_for(state="visible", timeout=self.timeout)
        await field.clear()
        await field.fill(email)
        drawer_buttons = self.page.locator("#right_drawer button")
        await click_first(self.page, [drawer_buttons.filter(has_text="Continue")],
                          ActionPolicy.REQUIRED, action="email continue", timeout_ms=self.timeout)
        await click_first(self.page, [drawer_buttons.filter(has_text="Next")],
                          ActionPolicy.OPTIONAL, action="email next", timeout_ms=3000)

    async def enter_otp(self, otp: str) -> None:
        """Type the code into the per-digit boxes, or into a single code field.

        The digit boxes are only used when the code has exactly one digit per
        box; any other length goes to the single field, and a code that fits
        neither raises ``ActionFailedError``.
        """
        first_box = self.page.get_by_role("textbox", name=OTP_FIELDS[0])
        if len(otp) == len(OTP_FIELDS) and await probe(self.page, first_box, timeout_ms=self.timeout):
            for label, digit in zip(OTP_FIELDS, otp):
                await self.page.get_by_role("textbox", name=label).fill(digit)
        else:
            logger.debug("Entering %d-digit OTP into a single field", len(otp))
            await fill_first(self.page, self.SINGLE_OTP_INPUTS, otp,
                             ActionPolicy.REQUIRED, action="otp field", timeout_ms=self.timeout)
        await click_first(
            self.page,
            [self.page.locator("#right_drawer button").filter(has_text=re.compile("Confirm|Submit", re.I))],
            ActionPolicy.OPTIONAL, action="confirm otp", timeout_ms=self.probe_timeout,
        )

    async def login(self, email: str) -> str:
        """Run the full email/OTP login and return the code that was used."""
        if self.otp_client is None:
            raise OtpNotReceivedError("No mailbox configured for OTP login")
        await self.open_login_drawer()
        await self.submit_email(email)
        otp = await self.otp_client.wait_for_otp()
        if not otp:
            raise OtpNotReceivedError(f"No OTP received for {email}")
        await self.enter_otp(otp)
        await self.dismiss_popups()
        logger.info("Logged in as %s", email)
        return otp
