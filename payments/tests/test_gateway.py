"""
Test the Paystack client against a mocked transport, plus the signature helper.
"""

import json

import httpx
import pytest

from payments.gateway import PaystackClient
from payments.signature import compute_signature, signature_matches
from utils.circuit_breaker import CircuitBreaker
from utils.errors import UpstreamError


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _client(handler, breaker=None, secret_key="sk_test_abc"):
    return PaystackClient(
        secret_key=secret_key,
        base_url="https://api.paystack.test",
        timeout=2,
        breaker=breaker or CircuitBreaker("paystack", 60),
        transport=httpx.MockTransport(handler),
    )


def test_verify_parses_a_successful_transaction():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={
            "status": True,
            "message": "Verification successful",
            "data": {"status": "success", "amount": 50000, "reference": "REF-1", "currency": "GHS"},
        })

    result = _client(handler).verify_transaction("REF-1")

    assert seen["url"] == "https://api.paystack.test/transaction/verify/REF-1"
    assert seen["auth"] == "Bearer sk_test_abc"
    assert result.success
    assert result.amount_minor_units == 50000
    assert result.currency == "GHS"


def test_verify_reports_unsuccessful_status():
    def handler(request):
        return httpx.Response(200, json={"status": True, "data": {"status": "abandoned", "amount": 50000}})

    result = _client(handler).verify_transaction("REF-1")

    assert not result.success
    assert result.status == "abandoned"
    assert result.reference == "REF-1"


def test_reference_is_url_quoted():
    seen = {}

    def handler(request):
        seen["path"] = request.url.raw_path
        return httpx.Response(200, json={"status": True, "data": {"status": "success", "amount": 1}})

    _client(handler).verify_transaction("a/b c")

    assert seen["path"] == b"/transaction/verify/a%2Fb%20c"


def test_rate_limit_trips_the_breaker_and_fails_fast():
    clock = FakeClock()
    breaker = CircuitBreaker("paystack", 60, clock=clock)
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(429, json={"status": False, "message": "Too many requests"})

    client = _client(handler, breaker=breaker)

    with pytest.raises(UpstreamError) as exc:
        client.verify_transaction("REF-1")
    assert exc.value.detail["reason"] == "rate limited"
    assert breaker.is_open

    with pytest.raises(UpstreamError) as exc:
        client.verify_transaction("REF-1")
    assert exc.value.detail["reason"] == "circuit open"
    assert len(calls) == 1

    clock.now += 61
    with pytest.raises(UpstreamError):
        client.verify_transaction("REF-1")
    assert len(calls) == 2


def test_timeout_is_an_upstream_error():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(UpstreamError) as exc:
        _client(handler).verify_transaction("REF-1")
    assert exc.value.detail["reason"] == "timeout"


def test_server_error_and_bad_bodies_are_upstream_errors():
    responses = [
        httpx.Response(500, text="boom"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"status": False, "message": "Transaction reference not found"}),
        httpx.Response(200, json={"status": True, "data": {"status": "success", "amount": "lots"}}),
    ]

    for response in responses:
        with pytest.raises(UpstreamError):
            _client(lambda request, r=response: r).verify_transaction("REF-1")


def test_missing_secret_key_never_calls_out():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(UpstreamError):
        _client(handler, secret_key="").verify_transaction("REF-1")


def test_initialize_posts_payload():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={
            "status": True,
            "data": {"authorization_url": "https://checkout.paystack.com/xyz", "access_code": "xyz", "reference": "R-9"},
        })

    result = _client(handler).initialize_transaction({"email": "ama@abroadpass.io", "amount": 1200, "reference": "R-9"})

    assert seen["method"] == "POST"
    assert seen["body"]["amount"] == 1200
    assert result.authorization_url == "https://checkout.paystack.com/xyz"
    assert result.reference == "R-9"


def test_initialize_failure_message():
    with pytest.raises(UpstreamError) as exc:
        _client(lambda request: httpx.Response(400, json={"status": False})).initialize_transaction({"amount": 1})
    assert exc.value.message == "Payment initialization failed"


def test_signature_helper():
    body = b'{"event":"charge.success","data":{"reference":"REF-1"}}'
    signature = compute_signature(body, "secret")

    assert len(signature) == 128
    assert signature_matches(body, signature, "secret")
    assert not signature_matches(body, signature, "other-secret")
    assert not signature_matches(body + b" ", signature, "secret")
    assert not signature_matches(body, signature.upper(), "secret")
    assert not signature_matches(body, None, "secret")
    assert not signature_matches(body, "", "secret")
