import time

import pytest

from agencyhub.errors import ValidationError
from agencyhub.webhook_security import WebhookSignatureError, construct_stripe_event, create_stripe_signature

SECRET = "whsec_unit"
BODY = b'{"id": "evt_1", "object": "event", "type": "charge.refunded", "data": {"object": {"id": "ch_1"}}}'


def test_valid_signature_returns_event():
    event = construct_stripe_event(BODY, create_stripe_signature(SECRET, BODY), SECRET)

    assert event.get("type") == "charge.refunded"
    assert event.get("data").get("object").get("id") == "ch_1"


def test_any_v1_signature_may_match():
    timestamp = int(time.time())
    good = create_stripe_signature(SECRET, BODY, timestamp=timestamp).split("v1=")[1]
    rolled = f"t={timestamp},v1={'0' * 64},v1={good}"

    assert construct_stripe_event(BODY, rolled, SECRET).get("id") == "evt_1"


def test_tampered_body_rejected():
    header = create_stripe_signature(SECRET, BODY)
    with pytest.raises(WebhookSignatureError):
        construct_stripe_event(BODY + b" ", header, SECRET)


def test_wrong_secret_rejected():
    header = create_stripe_signature("whsec_other", BODY)
    with pytest.raises(WebhookSignatureError):
        construct_stripe_event(BODY, header, SECRET)


def test_expired_timestamp_rejected():
    header = create_stripe_signature(SECRET, BODY, timestamp=int(time.time()) - 3600)
    with pytest.raises(WebhookSignatureError):
        construct_stripe_event(BODY, header, SECRET, max_age=300)


@pytest.mark.parametrize("header", [None, "", "garbage", "t=123"])
def test_malformed_headers_rejected(header):
    with pytest.raises(WebhookSignatureError):
        construct_stripe_event(BODY, header, SECRET)


def test_missing_secret_rejected():
    with pytest.raises(WebhookSignatureError, match="not configured"):
        construct_stripe_event(BODY, create_stripe_signature(SECRET, BODY), None)


def test_signed_body_that_is_not_json_is_a_validation_error():
    body = b"not json"
    with pytest.raises(ValidationError):
        construct_stripe_event(body, create_stripe_signature(SECRET, body), SECRET)
