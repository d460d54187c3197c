from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import soupsieve
from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_validator

DEFAULT_PAGE_URL = "https://store.steampowered.com/sale/steamdeckrefurbished"
DEFAULT_ITEM_TEXT = "Steam Deck 512 GB OLED - Valve Certified Refurbished"


class Verdict(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    ITEM_NOT_FOUND = "item_not_found"
    EXTRACTION_ERROR = "extraction_error"


class CheckTarget(BaseModel):
    """What to look for and where. Built once at startup and never mutated."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    page_url: HttpUrl = Field(default=DEFAULT_PAGE_URL, validate_default=True)
    container_selector: str = Field(default="#SaleSection_33131", min_length=1)
    item_selector: str = Field(default='div[class*="ItemCount_1"]', min_length=1)
    availability_selector: str = Field(default='div[class*="CartBtn"] span', min_length=1)
    target_item_text: str = Field(default=DEFAULT_ITEM_TEXT, min_length=1)

    @field_validator("item_selector", "availability_selector")
    @classmethod
    def compile_selector(cls, value: str) -> str:
        try:
            soupsieve.compile(value)
        except soupsieve.SelectorSyntaxError as exc:
            raise ValueError(f"invalid CSS selector {value!r}: {exc}") from exc
        return value

    @property
    def url(self) -> str:
        return str(self.page_url)


class RenderSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    settle_delay_seconds: float = Field(default=5.0, ge=0)
    timeout_seconds: float = Field(default=90.0, gt=0)
    headless: bool = True
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/100.0.4896.127 Safari/537.36"
    )


class TelegramConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    bot_token: str = Field(repr=False)
    chat_id: str


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    check_interval_seconds: float = Field(gt=0)
    telegram: TelegramConfig | None = None
    target: CheckTarget = Field(default_factory=CheckTarget)
    render: RenderSettings = Field(default_factory=RenderSettings)
    notify_on_error: bool = False

    @property
    def recipient(self) -> str:
        return self.telegram.chat_id if self.telegram else "dry-run"


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    recipient: str
    message: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
