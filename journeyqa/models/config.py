"""Configuration models for the journey test suite."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def _resolve_env(v):
    if isinstance(v, str) and v.startswith("env:"):
        env_var = v[4:]
        resolved = os.environ.get(env_var)
        if resolved is None:
            raise ValueError(f"Environment variable '{env_var}' not set")
        return resolved
    return v


class ViewportConfig(BaseModel):
    width: int = 1280
    height: int = 720
    name: str = "desktop"


class MailboxConfig(BaseModel):
    """IMAP mailbox that receives login OTP emails."""

    address: str
    app_password: str
    imap_host: str = "imap.gmail.com"
    imap_port: int = 993
    window_minutes: int = 5
    max_messages: int = 10
    otp_timeout_seconds: int = 60
    poll_interval_seconds: float = 3.0

    @field_validator("app_password", mode="before")
    @classmethod
    def resolve_env_password(cls, v: str) -> str:
        return _resolve_env(v)


class DatastoreConfig(BaseModel):
    url: str = ""
    key: str = ""
    max_retries: int = 3
    retry_delay_seconds: float = 1.0

    @field_validator("url", "key", mode="before")
    @classmethod
    def resolve_env_value(cls, v: str) -> str:
        return _resolve_env(v)

    @property
    def enabled(self) -> bool:
        return bool(self.url and self.key)


class FrameworkConfig(BaseModel):
    # Target
    base_url: str
    system: str = "DESKTOP"
    environment: str = "dev"
    framework: str = "playwright"

    # Browser
    headless: bool = True
    viewport: ViewportConfig = Field(default_factory=ViewportConfig)
    action_timeout_ms: int = 10000
    probe_timeout_ms: int = 3000
    navigation_timeout_ms: int = 30000
    blocked_url_patterns: list[str] = Field(
        default_factory=lambda: ["freshchat.com", "widget", "chat"]
    )

    # Journeys
    journeys: list[str] = Field(default_factory=list)
    customer_email: str = ""
    search_term: str = "cake"
    product_path: str = "/"
    alternate_product_path: str = "/"
    delivery_dates: list[str] = Field(
        default_factory=lambda: ["15", "20", "25", "29", "28", "27", "26", "10"]
    )
    delivery_time_slots: list[str] = Field(
        default_factory=lambda: [
            ":00 - 09:00 Hrs",
            "12:00 - 14:00 Hrs",
            "14:00 - 16:00 Hrs",
            "16:00 - 18:00 Hrs",
            "18:00 - 20:00 Hrs",
        ]
    )
    invalid_coupon_code: str = "INVALID10"
    valid_coupon_code: str = "GIFT10"

    # Integrations
    mailbox: Optional[MailboxConfig] = None
    datastore: DatastoreConfig = Field(default_factory=DatastoreConfig)

    # Reporting
    report_formats: list[str] = Field(default_factory=lambda: ["html", "json"])
    report_output_dir: str = "./journey-reports"
    screenshot_on_failure: bool = True

    @field_validator("system")
    @classmethod
    def normalize_system(cls, v: str) -> str:
        return v.upper()

    @classmethod
    def load(cls, path: str | Path) -> "FrameworkConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
