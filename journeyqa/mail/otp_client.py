"""Mailbox OTP retrieval over IMAP."""

from __future__ import annotations

import asyncio
import email
import imaplib
import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email import policy
from email.message import EmailMessage
from email.utils import parsedate_to_datetime
from typing import Optional

from journeyqa.models.config import MailboxConfig

logger = logging.getLogger(__name__)

EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

SUBJECT_PATTERN = re.compile(r"OTP\s+(\d{4,6})", re.IGNORECASE)

# Checked in order; the first match wins.
BODY_PATTERNS = [
    re.compile(r"Your OTP\s*-\s*<strong>(\d{4,6})</strong>", re.IGNORECASE),
    re.compile(r"Your OTP\s*-\s*(\d{4,6})", re.IGNORECASE),
    re.compile(r"OTP\s*:?\s*(\d{4,6})", re.IGNORECASE),
    re.compile(r"code\s*:?\s*(\d{4,6})", re.IGNORECASE),
    re.compile(r"verification\s*code\s*:?\s*(\d{4,6})", re.IGNORECASE),
]


@dataclass
class OtpMessage:
    otp: str
    date: datetime
    subject: str


_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def imap_date(dt: datetime) -> str:
    """RFC 3501 ``date`` for SEARCH (e.g. ``05-Jan-2026``), independent of locale."""
    return f"{dt.day:02d}-{_MONTHS[dt.month - 1]}-{dt.year}"


def extract_otp(subject: str, body: str) -> Optional[str]:
    """Extract a 4-6 digit code from a message, subject first then body.

    Messages that mention "OTP" in neither subject nor body are ignored.
    """
    subject = subject or ""
    body = body or ""
    if "OTP" not in subject and "OTP" not in body:
        return None

    match = SUBJECT_PATTERN.search(subject)
    if match:
        return match.group(1)

    for pattern in BODY_PATTERNS:
        match = pattern.search(body)
        if match:
            return match.group(1)
    return None


def most_recent(messages: list[OtpMessage]) -> Optional[OtpMessage]:
    if not messages:
        return None
    return max(messages, key=lambda m: m.date)


def _message_date(msg: EmailMessage) -> datetime:
    raw = msg.get("date")
    if not raw:
        return EPOCH
    try:
        parsed = parsedate_to_datetime(str(raw))
    except (TypeError, ValueError):
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _message_body(msg: EmailMessage) -> str:
    part = msg.get_body(preferencelist=("plain", "html"))
    if part is None:
        return ""
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError) as e:
        logger.debug("Could not decode message body: %s", e)
        return ""


def parse_message(raw: bytes) -> Optional[OtpMessage]:
    """Parse a raw RFC 822 message into an OtpMessage, or None if it has no code."""
    msg = email.message_from_bytes(raw, policy=policy.default)
    subject = str(msg.get("subject") or "")
    body = _message_body(msg)
    otp = extract_otp(subject, body)
    if otp is None:
        return None
    return OtpMessage(otp=otp, date=_message_date(msg), subject=subject)


class GmailOtpClient:
    """Reads login OTP codes from an IMAP mailbox.

    The inbox is opened read-only. Unread messages from the trailing window
    are searched first; if that search errors the client falls back to all
    unread messages. Up to ``max_messages`` of the most recent matches are
    parsed and the code from the latest-dated message wins.
    """

    def __init__(self, config: MailboxConfig):
        self.config = config

    def _connect(self) -> imaplib.IMAP4_SSL:
        logger.info("IMAP: connecting to %s:%d as %s",
                    self.config.imap_host, self.config.imap_port, self.config.address)
        conn = imaplib.IMAP4_SSL(self.config.imap_host, self.config.imap_port)
        conn.login(self.config.address, self.config.app_password)
        typ, _ = conn.select("INBOX", readonly=True)
        if typ != "OK":
            conn.logout()
            raise imaplib.IMAP4.error("Failed to open INBOX")
        return conn

    def _search_unread(self, conn: imaplib.IMAP4_SSL) -> list[bytes]:
        since = datetime.now(timezone.utc) - timedelta(minutes=self.config.window_minutes)
        since_str = imap_date(since)
        try:
            typ, data = conn.search(None, "UNSEEN", "SINCE", since_str)
            if typ != "OK":
                raise imaplib.IMAP4.error(f"SEARCH returned {typ}")
        except imaplib.IMAP4.error as e:
            logger.info("IMAP: windowed search failed (%s), trying all unread messages", e)
            typ, data = conn.search(None, "UNSEEN")
            if typ != "OK":
                raise imaplib.IMAP4.error(f"SEARCH returned {typ}")
        return data[0].split() if data and data[0] else []

    def _fetch(self, conn: imaplib.IMAP4_SSL, msg_id: bytes) -> Optional[bytes]:
        typ, data = conn.fetch(msg_id, "(BODY.PEEK[])")
        if typ != "OK" or not data:
            return None
        for item in data:
            if isinstance(item, tuple) and len(item) >= 2:
                return item[1]
        return None

    def fetch_latest_otp(self) -> Optional[str]:
        """Return the OTP from the most recently dated unread message, or None.

        Connection and login failures propagate.
        """
        conn = self._connect()
        try:
            ids = self._search_unread(conn)
            logger.info("IMAP: found %d unread messages", len(ids))
            if not ids:
                return None

            found: list[OtpMessage] = []
            for msg_id in ids[-self.config.max_messages:]:
                raw = self._fetch(conn, msg_id)
                if raw is None:
                    continue
                try:
                    parsed = parse_message(raw)
                except Exception as e:
                    logger.warning("IMAP: failed to parse message %s: %s", msg_id, e)
                    continue
                if parsed:
                    logger.debug("IMAP: OTP %s from %s (%s)",
                                 parsed.otp, parsed.date.isoformat(), parsed.subject)
                    found.append(parsed)

            latest = most_recent(found)
            if latest is None:
                logger.warning("IMAP: no OTP found in %d candidate messages", len(ids))
                return None
            logger.info("IMAP: most recent OTP is from %s", latest.date.isoformat())
            return latest.otp
        finally:
            try:
                conn.logout()
            except Exception as e:
                logger.debug("IMAP: logout failed: %s", e)

    async def wait_for_otp(
        self,
        timeout_s: float | None = None,
        poll_interval_s: float | None = None,
    ) -> Optional[str]:
        """Poll the mailbox until a code arrives or the timeout elapses."""
        timeout_s = self.config.otp_timeout_seconds if timeout_s is None else timeout_s
        poll_interval_s = (
            self.config.poll_interval_seconds if poll_interval_s is None else poll_interval_s
        )
        deadline = time.monotonic() + timeout_s
        while True:
            otp = await asyncio.to_thread(self.fetch_latest_otp)
            if otp:
                return otp
            if time.monotonic() + poll_interval_s >= deadline:
                logger.warning("IMAP: no OTP arrived within %.0fs", timeout_s)
                return None
            await asyncio.sleep(poll_interval_s)
