"""
Tests for operational endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_health_reports_cache_disabled(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_exposes_callback_outcomes(client: AsyncClient):
    await client.post("/payment-callback", data={"txnid": "only"})

    response = await client.get("/metrics")
    assert response.status_code == 200
    assert 'payment_callback_outcomes_total{outcome="rejected"}' in response.text


@pytest.mark.asyncio
async def test_metrics_count_initiation_results(client: AsyncClient, headers_one):
    created = await client.post(
        "/api/v1/bookings",
        json={"event_id": "evt-1", "first_name": "Asha", "last_name": "Tester", "email": "asha@example.com"},
        headers=headers_one,
    )
    await client.post(
        "/api/v1/bookings/initiate-payment",
        json={"bookingId": created.json()["id"]},
        headers=headers_one,
    )
    await client.post(
        "/api/v1/bookings/initiate-payment",
        json={"bookingId": "does-not-exist"},
        headers=headers_one,
    )

    text = (await client.get("/metrics")).text
    assert 'payment_initiations_total{result="initiated"}' in text
    assert 'result="not_found"' not in text
