"""
Locust Load Test Suite

Needs users that already exist in the target database and the same PayU
credentials as the server (read from the environment through Settings):

  LOCUST_USER_IDS=1,2,3,4 PAYU_SALT=... PAYU_MERCHANT_KEY=... \\
      locust -f locustfile.py --tags duplicates

Run scenarios:
  locust -f locustfile.py --tags duplicates  # Same callback delivered many times
  locust -f locustfile.py --tags referrals   # Users racing for one referral code
  locust -f locustfile.py --tags edge        # Bad input
  locust -f locustfile.py                    # All tests
"""

import os
import random
from decimal import Decimal

from locust import HttpUser, task, between, tag

from ticketpay.core.config import GatewayConfig, get_settings
from ticketpay.core.security import create_access_token
from ticketpay.services import hash_signer

USER_IDS = [int(uid) for uid in os.getenv("LOCUST_USER_IDS", "1,2").split(",") if uid.strip()]
GATEWAY = GatewayConfig.from_settings(get_settings())

# Shared state
SHARED_REFERRAL_CODES = []


def auth_headers(user_id: int) -> dict:
    return {"Authorization": f"Bearer {create_access_token(data={'sub': str(user_id)})}"}


def booking_body(**extra) -> dict:
    return {
        "event_id": "load-test",
        "first_name": "Load",
        "last_name": "Tester",
        "email": f"load_{random.randint(10000, 99999)}@test.com",
        **extra,
    }


def signed_callback(checkout: dict, status: str, mihpayid: str) -> dict:
    form = {
        "mihpayid": mihpayid,
        "txnid": checkout["txnid"],
        "amount": f"{Decimal(checkout['amount']):.2f}",
        "productinfo": checkout["productinfo"],
        "firstname": checkout["firstname"],
        "email": checkout["email"],
        "udf1": checkout["udf1"],
        "status": status,
    }
    form["hash"] = hash_signer.response_hash(
        GATEWAY,
        status=status,
        txnid=form["txnid"],
        amount=form["amount"],
        productinfo=form["productinfo"],
        firstname=form["firstname"],
        email=form["email"],
        udfs={"udf1": form["udf1"]},
    )
    return form


class DuplicateCallbackUser(HttpUser):
    """
    TEST 1: At-least-once delivery - one payment, many callbacks

    Run: locust -f locustfile.py --tags duplicates -u 50 -r 10 --run-time 60s

    After test, verify no booking changed after completion:
      SELECT COUNT(*) FROM bookings WHERE payment_status = 'completed'
        AND payment_method IS NULL;
    Should be 0
    """
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.headers = auth_headers(random.choice(USER_IDS))

    @tag("duplicates")
    @task
    def pay_and_replay(self):
        resp = self.client.post("/api/v1/bookings", json=booking_body(), headers=self.headers)
        if resp.status_code != 201:
            return

        resp = self.client.post(
            "/api/v1/bookings/initiate-payment",
            json={"bookingId": resp.json()["id"]},
            headers=self.headers,
        )
        if resp.status_code != 200:
            return

        form = signed_callback(resp.json()["data"], "success", str(random.randint(10**9, 10**10)))
        for _ in range(random.randint(2, 5)):
            with self.client.post(
                "/payment-callback",
                data=form,
                allow_redirects=False,
                catch_response=True,
                name="/payment-callback [replay]",
            ) as cb:
                if cb.status_code == 303 and "status=success" in cb.headers.get("location", ""):
                    cb.success()
                else:
                    cb.failure(f"Unexpected: {cb.status_code} {cb.headers.get('location')}")


class ReferralRaceUser(HttpUser):
    """
    TEST 2: Many users race to redeem the same referral code

    Run: locust -f locustfile.py --tags referrals -u 100 -r 50 --run-time 30s

    After test, verify each code was spent at most once:
      SELECT code, COUNT(*) FROM bookings, json_array_elements_text(referral_coupons) code
        GROUP BY code HAVING COUNT(*) > 1;
    Should return no rows
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = auth_headers(random.choice(USER_IDS))

    @tag("referrals")
    @task(1)
    def issue_code(self):
        resp = self.client.post("/api/v1/bookings", json=booking_body(), headers=self.headers)
        if resp.status_code == 201:
            SHARED_REFERRAL_CODES.append(resp.json()["referral_code"])

    @tag("referrals")
    @task(5)
    def redeem_code(self):
        if not SHARED_REFERRAL_CODES:
            return
        code = random.choice(SHARED_REFERRAL_CODES)
        with self.client.post(
            "/api/v1/bookings",
            json=booking_body(referral_codes=[code]),
            headers=self.headers,
            catch_response=True,
            name="/api/v1/bookings [referral]",
        ) as resp:
            if resp.status_code in (201, 400):
                resp.success()  # 400: already spent or own code
            else:
                resp.failure(f"Unexpected: {resp.status_code}")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = auth_headers(random.choice(USER_IDS))

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def forged_callback(self):
        form = {"txnid": "forged", "status": "success", "amount": "1.00", "hash": "0" * 128}
        with self.client.post("/payment-callback", data=form, allow_redirects=False,
                              catch_response=True) as resp:
            if resp.status_code == 303 and "hash_mismatch" in resp.headers.get("location", ""):
                resp.success()
            else:
                resp.failure(f"Forged callback not rejected: {resp.status_code}")

    @tag("edge")
    @task
    def callback_missing_fields(self):
        with self.client.post("/payment-callback", data={"txnid": "x"}, allow_redirects=False,
                              catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def too_many_referrals(self):
        with self.client.post("/api/v1/bookings",
                              json=booking_body(referral_codes=["A", "B", "C"]),
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [400])

    @tag("edge")
    @task
    def initiate_unknown_booking(self):
        with self.client.post("/api/v1/bookings/initiate-payment",
                              json={"bookingId": "missing"},
                              headers=self.headers, catch_response=True) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post("/api/v1/bookings", json=booking_body(), catch_response=True) as resp:
            self._expect(resp, [401])
