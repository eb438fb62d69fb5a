"""MarzPay webhook parsing.

MarzPay posts the collection result either with the transaction at the top
level or nested under ``data`` depending on the account mode. Each layout is an
explicit payload variant below so a new layout is a new case rather than a
silent fallthrough.
"""

from __future__ import annotations

import enum
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Optional

from dirttrails.core.config import get_settings
from dirttrails.services.errors import WebhookValidationError


class GatewayStatus(str, enum.Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    OTHER = "other"


_COMPLETED_STATUS = {"successful", "success", "completed"}
_FAILED_STATUS = {"failed", "cancelled", "rejected", "expired"}


def normalize_status(raw: Any) -> GatewayStatus:
    value = str(raw or "").strip().lower()
    if value in _COMPLETED_STATUS:
        return GatewayStatus.COMPLETED
    if value in _FAILED_STATUS:
        return GatewayStatus.FAILED
    return GatewayStatus.OTHER


@dataclass(frozen=True)
class TopLevelPayload:
    transaction: dict
    collection: Optional[dict]


@dataclass(frozen=True)
class NestedDataPayload:
    transaction: dict
    collection: Optional[dict]


@dataclass(frozen=True)
class WebhookEvent:
    reference: str
    status: GatewayStatus
    gateway_status: str
    transaction_uuid: Optional[str]
    provider_reference: Optional[str]
    formatted_amount: Optional[str]
    payload: dict

    @property
    def is_completed(self) -> bool:
        return self.status == GatewayStatus.COMPLETED


def _as_dict(value: Any) -> Optional[dict]:
    return value if isinstance(value, dict) else None


def classify_payload(body: dict) -> TopLevelPayload | NestedDataPayload:
    data = _as_dict(body.get("data")) or {}
    collection = _as_dict(body.get("collection")) or _as_dict(data.get("collection"))

    nested = _as_dict(data.get("transaction"))
    if nested is not None:
        return NestedDataPayload(transaction=nested, collection=collection)

    top_level = _as_dict(body.get("transaction"))
    if top_level is not None:
        return TopLevelPayload(transaction=top_level, collection=collection)

    raise WebhookValidationError("Missing transaction.reference")


def _formatted_amount(collection: Optional[dict]) -> Optional[str]:
    amount = (collection or {}).get("amount")
    if isinstance(amount, dict):
        formatted = amount.get("formatted")
        return str(formatted) if formatted not in (None, "") else None
    return None


def _optional_text(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


def normalize_webhook(body: Any) -> WebhookEvent:
    if not isinstance(body, dict):
        raise WebhookValidationError("Invalid JSON")

    variant = classify_payload(body)
    transaction = variant.transaction
    reference = _optional_text(transaction.get("reference"))
    if not reference:
        raise WebhookValidationError("Missing transaction.reference")

    gateway_status = str(transaction.get("status") or "").strip().lower()
    return WebhookEvent(
        reference=reference,
        status=normalize_status(gateway_status),
        gateway_status=gateway_status,
        transaction_uuid=_optional_text(transaction.get("uuid")),
        provider_reference=_optional_text(transaction.get("provider_reference")),
        formatted_amount=_formatted_amount(variant.collection),
        payload=body,
    )


def parse_webhook(body: bytes) -> WebhookEvent:
    try:
        payload = json.loads(body or b"")
    except (TypeError, ValueError):
        raise WebhookValidationError("Invalid JSON")
    return normalize_webhook(payload)


def verify_marzpay_signature(body: bytes, signature: Optional[str]) -> bool:
    secret = get_settings().marzpay_webhook_secret
    if not secret:
        # Signing is opt-in; unsigned accounts accept every delivery.
        return True
    sig = (signature or "").strip()
    if not sig:
        return False
    computed = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed, sig)
