from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Protocol

import httpx

from dirttrails.core.config import Settings, get_settings, parse_csv_list

logger = logging.getLogger(__name__)


class OutcomeKind(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass(frozen=True)
class PaymentOutcome:
    kind: OutcomeKind
    reference: str
    order_id: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: str = "UGX"
    formatted_amount: Optional[str] = None
    phone_number: Optional[str] = None
    status: Optional[str] = None
    problems: tuple[str, ...] = field(default_factory=tuple)


def format_outcome_message(outcome: PaymentOutcome) -> str:
    if outcome.kind == OutcomeKind.COMPLETED:
        amount = outcome.formatted_amount or f"{outcome.amount} {outcome.currency}"
        return (
            "Payment completed\n"
            f"Order #{outcome.order_id}\n"
            f"Amount: {amount}\n"
            f"Phone: {outcome.phone_number or '-'}\n"
            f"Ref: {outcome.reference}"
        )
    if outcome.kind == OutcomeKind.FAILED:
        return (
            "Payment failed\n"
            f"Order #{outcome.order_id}\n"
            f"Ref: {outcome.reference}\n"
            f"Status: {outcome.status}"
        )
    lines = [
        "Fulfillment incomplete, manual check needed",
        f"Order #{outcome.order_id}",
        f"Ref: {outcome.reference}",
    ]
    lines.extend(f"- {problem}" for problem in outcome.problems)
    return "\n".join(lines)


class NotificationChannel(Protocol):
    name: str

    async def send(self, client: httpx.AsyncClient, text: str) -> None: ...


class ConsoleChannel:
    name = "console"

    async def send(self, client: httpx.AsyncClient, text: str) -> None:
        # Safe default for dev/test; the message only goes to the logs.
        logger.info("[notify][console] %s", text.replace("\n", " | "))


class TelegramChannel:
    def __init__(self, *, bot_token: str, chat_id: str, base_url: str = "https://api.telegram.org"):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.base_url = base_url.rstrip("/")
        self.name = f"telegram:{chat_id}"

    async def send(self, client: httpx.AsyncClient, text: str) -> None:
        # Plain text: exception details in alerts may contain "<" and "&".
        payload = {"chat_id": self.chat_id, "text": text}
        res = await client.post(f"{self.base_url}/bot{self.bot_token}/sendMessage", json=payload)
        if res.status_code >= 400:
            raise RuntimeError(f"Telegram error: {res.status_code} {res.text}")


def build_channels(settings: Settings) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = []
    for provider in parse_csv_list((settings.notification_provider or "").lower()):
        if provider == "console":
            channels.append(ConsoleChannel())
        elif provider == "telegram":
            chat_ids = parse_csv_list(settings.telegram_chat_ids)
            if not settings.telegram_bot_token or not chat_ids:
                logger.info("Telegram notifications not configured; skipping channel")
                continue
            channels.extend(
                TelegramChannel(
                    bot_token=settings.telegram_bot_token,
                    chat_id=chat_id,
                    base_url=settings.telegram_api_base_url,
                )
                for chat_id in chat_ids
            )
        else:
            logger.warning("Unsupported NOTIFICATION_PROVIDER entry %r ignored", provider)
    return channels


class NotificationDispatcher:
    """Best-effort fan-out. A failing channel is logged and never retried or raised."""

    def __init__(
        self,
        channels: list[NotificationChannel],
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.channels = list(channels)
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "NotificationDispatcher":
        settings = settings or get_settings()
        return cls(build_channels(settings), timeout=settings.notification_timeout_seconds)

    async def _deliver(self, client: httpx.AsyncClient, channel: NotificationChannel, text: str) -> bool:
        try:
            await channel.send(client, text)
            return True
        except Exception as exc:
            logger.warning("Notification via %s failed: %s", channel.name, exc)
            return False

    async def dispatch(self, outcome: PaymentOutcome) -> dict[str, bool]:
        if not self.channels:
            return {}
        text = format_outcome_message(outcome)
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            results = await asyncio.gather(*(self._deliver(client, channel, text) for channel in self.channels))
        return {channel.name: ok for channel, ok in zip(self.channels, results)}

    async def dispatch_all(self, outcomes: list[PaymentOutcome]) -> None:
        for outcome in outcomes:
            await self.dispatch(outcome)


def get_notification_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher.from_settings()
