"""
backend/tests/test_http_client.py

Purpose:
    Retry on 5xx, pass-through of 429 and the circuit breaker state machine.
"""

from __future__ import annotations

import sys

import httpx
import pytest

sys.path.insert(0, "backend")

from app.providers.http_client import CircuitBreaker, ResilientClient


@pytest.mark.asyncio
async def test_retries_server_errors_then_returns_success():
    statuses = iter([503, 502, 200])
    client = ResilientClient(
        "test",
        transport=httpx.MockTransport(lambda req: httpx.Response(next(statuses))),
        max_retries=2,
        backoff_base=0,
    )

    response = await client.get("https://example.test/events?key=secret")

    assert response.status_code == 200
    await client.aclose()


@pytest.mark.asyncio
async def test_rate_limit_is_not_retried():
    calls = []

    def handler(req):
        calls.append(req)
        return httpx.Response(429)

    client = ResilientClient("test", transport=httpx.MockTransport(handler), backoff_base=0)
    assert (await client.get("https://example.test/events")).status_code == 429
    assert len(calls) == 1
    await client.aclose()


@pytest.mark.asyncio
async def test_network_error_is_reraised_after_last_attempt(caplog):
    def handler(req):
        raise httpx.ConnectError("refused", request=req)

    client = ResilientClient("test", transport=httpx.MockTransport(handler), max_retries=1, backoff_base=0)
    with pytest.raises(httpx.ConnectError):
        await client.get("https://example.test/events?apiKey=secret")
    assert "secret" not in caplog.text
    await client.aclose()


def test_circuit_opens_and_half_opens():
    circuit = CircuitBreaker("test", failure_threshold=2, recovery_seconds=0)
    circuit.record_failure()
    assert circuit.state == "closed"
    circuit.record_failure()
    assert circuit.is_open
    # zero cooldown: immediately half-open
    assert circuit.state == "half_open"
    assert circuit.can_attempt()
    circuit.record_success()
    assert circuit.state == "closed"


def test_open_circuit_blocks_attempts():
    circuit = CircuitBreaker("test", failure_threshold=1, recovery_seconds=300)
    circuit.record_failure()
    assert circuit.state == "open"
    assert not circuit.can_attempt()
