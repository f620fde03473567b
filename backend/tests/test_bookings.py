"""
Tests for booking endpoints: pricing, coupons and referral redemption.
"""

import pytest
from httpx import AsyncClient

from conftest import booking_payload, load_booking


async def create_booking(client: AsyncClient, headers: dict, **overrides) -> dict:
    response = await client.post("/api/v1/bookings", json=booking_payload(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_booking_full_price(client: AsyncClient, headers_one, user_one):
    """No discounts: total equals the base ticket price, payment pending."""
    data = await create_booking(client, headers_one)
    assert data["user_id"] == user_one.id
    assert data["base_amount"] == 1311
    assert data["discount_amount"] == 0
    assert data["total_amount"] == 1311
    assert data["payment_status"] == "pending"
    assert data["status"] == "confirmed"
    assert data["referral_code"].startswith("REF")
    assert data["referral_code_used"] is False
    assert data["attendees"][0]["name"] == "Asha Tester"


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, db_session):
    response = await client.post("/api/v1/bookings", json=booking_payload())
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_booking_invalid_ticket_type(client: AsyncClient, headers_one):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(ticket_type="VIP"),
        headers=headers_one,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_coupon_discount(client: AsyncClient, headers_one, college_coupon):
    data = await create_booking(client, headers_one, coupon_code="COLLEGE100")
    assert data["discount_amount"] == 100
    assert data["total_amount"] == 1211
    assert data["coupon_code"] == "COLLEGE100"


@pytest.mark.asyncio
async def test_inactive_coupon_rejected(client: AsyncClient, headers_one, retired_coupon):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(coupon_code="OLDPROMO"),
        headers=headers_one,
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_unknown_coupon_rejected(client: AsyncClient, headers_one):
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(coupon_code="NOPE"),
        headers=headers_one,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_referral_redeemed_once(
    client: AsyncClient, headers_one, headers_two, headers_three, user_two
):
    """B1's code gives B2 a discount once; a third user cannot reuse it."""
    b1 = await create_booking(client, headers_one)
    assert b1["total_amount"] == 1311

    b2 = await create_booking(client, headers_two, referral_codes=[b1["referral_code"]])
    assert b2["discount_amount"] == 50
    assert b2["total_amount"] == 1261
    assert b2["referral_coupons"] == [b1["referral_code"]]

    stored = await load_booking(b1["id"])
    assert stored.referral_code_used is True
    assert stored.referral_code_redeemed_by == user_two.id

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(referral_codes=[b1["referral_code"]]),
        headers=headers_three,
    )
    assert response.status_code == 400
    assert b1["referral_code"] in response.json()["detail"]


@pytest.mark.asyncio
async def test_referral_codes_accept_comma_string(client: AsyncClient, headers_one, headers_two):
    b1 = await create_booking(client, headers_one)
    b1b = await create_booking(client, headers_one)

    codes = f"{b1['referral_code']}, {b1b['referral_code']}"
    b2 = await create_booking(client, headers_two, referral_codes=codes)
    assert b2["discount_amount"] == 100
    assert b2["total_amount"] == 1211


@pytest.mark.asyncio
async def test_self_referral_rejected(client: AsyncClient, headers_one):
    own = await create_booking(client, headers_one)
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(referral_codes=[own["referral_code"]]),
        headers=headers_one,
    )
    assert response.status_code == 400
    assert (await load_booking(own["id"])).referral_code_used is False


@pytest.mark.asyncio
async def test_referral_cap_checked_before_lookup(client: AsyncClient, headers_one, headers_two):
    """Three valid codes fail as a whole and none is spent."""
    sources = [await create_booking(client, headers_one) for _ in range(3)]
    codes = [b["referral_code"] for b in sources]

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(referral_codes=codes),
        headers=headers_two,
    )
    assert response.status_code == 400
    assert "maximum of 2" in response.json()["detail"]
    for source in sources:
        assert (await load_booking(source["id"])).referral_code_used is False


@pytest.mark.asyncio
async def test_referral_all_or_nothing(client: AsyncClient, headers_one, headers_two):
    """One bad code rejects the booking and leaves the good code unspent."""
    good = await create_booking(client, headers_one)

    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(referral_codes=[good["referral_code"], "REFDEADBEEF"]),
        headers=headers_two,
    )
    assert response.status_code == 400
    assert (await load_booking(good["id"])).referral_code_used is False

    listing = await client.get("/api/v1/bookings/my-bookings", headers=headers_two)
    assert listing.json() == []


@pytest.mark.asyncio
async def test_duplicate_code_in_one_request_rejected(client: AsyncClient, headers_one, headers_two):
    b1 = await create_booking(client, headers_one)
    response = await client.post(
        "/api/v1/bookings",
        json=booking_payload(referral_codes=[b1["referral_code"], b1["referral_code"]]),
        headers=headers_two,
    )
    assert response.status_code == 400
    assert (await load_booking(b1["id"])).referral_code_used is False


@pytest.mark.asyncio
async def test_coupon_and_referral_stack(client: AsyncClient, headers_one, headers_two, college_coupon):
    b1 = await create_booking(client, headers_one)
    b2 = await create_booking(
        client,
        headers_two,
        coupon_code="COLLEGE100",
        referral_codes=[b1["referral_code"]],
    )
    assert b2["discount_amount"] == 150
    assert b2["total_amount"] == b2["base_amount"] - b2["discount_amount"]


@pytest.mark.asyncio
async def test_list_user_bookings(client: AsyncClient, headers_one, headers_two):
    await create_booking(client, headers_one)
    await create_booking(client, headers_two)

    response = await client.get("/api/v1/bookings/my-bookings", headers=headers_one)
    assert response.status_code == 200
    assert len(response.json()) == 1


@pytest.mark.asyncio
async def test_get_booking_owner_only(client: AsyncClient, headers_one, headers_two):
    b1 = await create_booking(client, headers_one)

    assert (await client.get(f"/api/v1/bookings/{b1['id']}", headers=headers_one)).status_code == 200
    assert (await client.get(f"/api/v1/bookings/{b1['id']}", headers=headers_two)).status_code == 403
    assert (await client.get("/api/v1/bookings/missing", headers=headers_one)).status_code == 404


@pytest.mark.asyncio
async def test_cancel_booking(client: AsyncClient, headers_one):
    b1 = await create_booking(client, headers_one)

    response = await client.put(f"/api/v1/bookings/{b1['id']}/cancel", headers=headers_one)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"

    again = await client.put(f"/api/v1/bookings/{b1['id']}/cancel", headers=headers_one)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_update_booking_details(client: AsyncClient, headers_one):
    b1 = await create_booking(client, headers_one)

    response = await client.patch(
        f"/api/v1/bookings/{b1['id']}",
        json={"tshirt_size": "L", "status": "attended"},
        headers=headers_one,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["tshirt_size"] == "L"
    assert data["status"] == "attended"
    assert data["payment_status"] == "pending"


@pytest.mark.asyncio
async def test_update_booking_rejects_unknown_status(client: AsyncClient, headers_one):
    b1 = await create_booking(client, headers_one)
    response = await client.patch(
        f"/api/v1/bookings/{b1['id']}",
        json={"status": "teleported"},
        headers=headers_one,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_validate_coupon_endpoint(client: AsyncClient, college_coupon, retired_coupon):
    ok = await client.post("/api/v1/coupons/validate", json={"code": "COLLEGE100"})
    assert ok.status_code == 200
    assert ok.json()["discount"] == 100

    inactive = await client.post("/api/v1/coupons/validate", json={"code": "OLDPROMO"})
    assert inactive.status_code == 400


@pytest.mark.asyncio
async def test_validate_referral_codes_does_not_spend(client: AsyncClient, headers_one, headers_two):
    b1 = await create_booking(client, headers_one)

    response = await client.post(
        "/api/v1/referral-codes/validate-referral-codes",
        json={"codes": [b1["referral_code"], "REFUNKNOWN"]},
        headers=headers_two,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["validCodes"] == [b1["referral_code"]]
    assert data["totalDiscount"] == 50
    assert (await load_booking(b1["id"])).referral_code_used is False

    too_many = await client.post(
        "/api/v1/referral-codes/validate-referral-codes",
        json={"codes": ["A", "B", "C"]},
        headers=headers_two,
    )
    assert too_many.status_code == 400

    own = await client.post(
        "/api/v1/referral-codes/validate-referral-codes",
        json={"codes": [b1["referral_code"]]},
        headers=headers_one,
    )
    assert own.status_code == 400
