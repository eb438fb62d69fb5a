import hashlib
import hmac
import json

import pytest

from conftest import webhook_body
from dirttrails.core.config import get_settings
from dirttrails.services.errors import WebhookValidationError
from dirttrails.services.marzpay import (
    GatewayStatus,
    NestedDataPayload,
    TopLevelPayload,
    classify_payload,
    normalize_status,
    parse_webhook,
    verify_marzpay_signature,
)


@pytest.mark.parametrize("raw", ["successful", "SUCCESS", "Completed", " success "])
def test_normalize_status_completed_vocabulary(raw):
    assert normalize_status(raw) == GatewayStatus.COMPLETED


@pytest.mark.parametrize("raw", ["failed", "cancelled", "REJECTED", "expired"])
def test_normalize_status_failed_vocabulary(raw):
    assert normalize_status(raw) == GatewayStatus.FAILED


@pytest.mark.parametrize("raw", ["pending", "processing", "", None])
def test_normalize_status_other(raw):
    assert normalize_status(raw) == GatewayStatus.OTHER


def test_parse_top_level_transaction():
    event = parse_webhook(webhook_body("R9", "successful", formatted_amount="UGX 50,000"))
    assert event.reference == "R9"
    assert event.status == GatewayStatus.COMPLETED
    assert event.gateway_status == "successful"
    assert event.transaction_uuid == "tx-uuid-1"
    assert event.provider_reference == "MTN123"
    assert event.formatted_amount == "UGX 50,000"


def test_parse_nested_data_transaction():
    event = parse_webhook(webhook_body("R9", "failed", nested=True, formatted_amount="UGX 1,000"))
    assert event.reference == "R9"
    assert event.status == GatewayStatus.FAILED
    assert event.formatted_amount == "UGX 1,000"


def test_nested_transaction_wins_over_top_level():
    body = {"transaction": {"reference": "TOP"}, "data": {"transaction": {"reference": "NESTED"}}}
    variant = classify_payload(body)
    assert isinstance(variant, NestedDataPayload)
    assert variant.transaction["reference"] == "NESTED"


def test_top_level_variant_reads_nested_collection():
    body = {"transaction": {"reference": "R1"}, "data": {"collection": {"amount": {"formatted": "UGX 5"}}}}
    variant = classify_payload(body)
    assert isinstance(variant, TopLevelPayload)
    assert variant.collection == {"amount": {"formatted": "UGX 5"}}


def test_other_status_keeps_raw_value():
    event = parse_webhook(webhook_body("R1", "Processing"))
    assert event.status == GatewayStatus.OTHER
    assert event.gateway_status == "processing"


@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"",
        b"[1, 2]",
        json.dumps({"event": "ping"}).encode(),
        json.dumps({"transaction": {"status": "successful"}}).encode(),
        json.dumps({"transaction": {"reference": "   "}}).encode(),
    ],
)
def test_invalid_payloads_raise_validation_error(body):
    with pytest.raises(WebhookValidationError):
        parse_webhook(body)


def test_signature_not_required_when_secret_unset(monkeypatch):
    monkeypatch.setattr(get_settings(), "marzpay_webhook_secret", None, raising=False)
    assert verify_marzpay_signature(b"{}", None)


def test_signature_checked_when_secret_set(monkeypatch):
    monkeypatch.setattr(get_settings(), "marzpay_webhook_secret", "whsec_marz", raising=False)
    body = webhook_body()
    signature = hmac.new(b"whsec_marz", body, hashlib.sha256).hexdigest()
    assert verify_marzpay_signature(body, signature)
    assert not verify_marzpay_signature(body, "bad")
    assert not verify_marzpay_signature(body, None)
