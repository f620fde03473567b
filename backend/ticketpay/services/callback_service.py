"""
Reconciliation of PayU's asynchronous payment callback.

DELIVERY MODEL
==============
PayU posts the outcome to surl/furl at least once, possibly more than once,
and in no particular order relative to the user's browser. The gateway
only needs a redirect back; an HTTP error would make it retry a link that
will keep failing. So every outcome below ends in a redirect to the
frontend, except a payload too broken to identify (400).

Steps:
  1. Parse. txnid, status and hash are required. An amount that does not
     parse is kept as missing and fails step 2.
  2. Verify the response hash. On mismatch nothing is read or written;
     the user is sent to the failure page with status=hash_mismatch.
  3. Find the booking by (udf1 = booking id, payment_id = txnid). If that
     misses, look for a booking already completed under the gateway's own
     id (mihpayid). That is a duplicate delivery of a finished payment.
  4. decide() maps (stored booking, verified payload) to a state change
     and a redirect. It is pure; every branch is unit tested without a DB.
  5. apply_decision() persists with a conditional UPDATE that only matches
     a booking that is still not completed and still carries this txnid.
     A concurrent duplicate that got there first makes our UPDATE match
     nothing, and we fall back to the success redirect without writing.

Invariant: no booking is mutated unless step 2 succeeded, and a completed
booking is never moved to any other payment status from here.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional
from urllib.parse import urlencode

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import GatewayConfig
from ticketpay.core.exceptions import IntegrityFailure, InvalidInputError, UpstreamInconsistency
from ticketpay.core.logging import get_logger
from ticketpay.core.metrics import record_callback_outcome
from ticketpay.models.booking import Booking
from ticketpay.models.enums import PaymentMethod, PaymentStatus
from ticketpay.services import hash_signer

logger = get_logger(__name__)

GATEWAY_SUCCESS = "success"
DEFAULT_FAILURE_MESSAGE = "Payment failed."
HASH_MISMATCH_MESSAGE = "Payment verification failed due to hash mismatch."
NOT_FOUND_MESSAGE = "We could not match this payment to a booking."


@dataclass(frozen=True)
class CallbackPayload:
    txnid: str
    status: str
    hash: str
    amount: Optional[str]
    mihpayid: Optional[str] = None
    productinfo: Optional[str] = None
    firstname: Optional[str] = None
    email: Optional[str] = None
    error_message: Optional[str] = None
    udfs: Mapping[str, Optional[str]] = field(default_factory=dict)
    raw: Mapping[str, str] = field(default_factory=dict)

    @property
    def booking_id(self) -> Optional[str]:
        return self.udfs.get("udf1") or None

    @property
    def succeeded(self) -> bool:
        return self.status.lower() == GATEWAY_SUCCESS

    @property
    def gateway_txnid(self) -> str:
        return self.mihpayid or self.txnid

    @classmethod
    def from_form(cls, form: Mapping[str, str]) -> "CallbackPayload":
        data = {k: v for k, v in form.items()}
        missing = [name for name in ("txnid", "status", "hash") if not data.get(name)]
        if missing:
            raise InvalidInputError(f"Missing parameters: {', '.join(missing)}")

        try:
            amount = hash_signer.format_amount(data.get("amount", ""))
        except InvalidInputError:
            # Cannot match any signed amount; verification fails.
            amount = None
        return cls(
            txnid=data["txnid"],
            status=data["status"],
            hash=data["hash"],
            amount=amount,
            mihpayid=data.get("mihpayid") or None,
            productinfo=data.get("productinfo"),
            firstname=data.get("firstname"),
            email=data.get("email"),
            error_message=data.get("error_Message") or data.get("error_message") or None,
            udfs={f"udf{i}": data.get(f"udf{i}") for i in range(1, hash_signer.UDF_SLOTS + 1)},
            raw=data,
        )


class Action(str, Enum):
    COMPLETE = "complete"
    FAIL = "fail"
    NONE = "none"


@dataclass(frozen=True)
class Decision:
    action: Action
    outcome: str
    redirect_url: str


@dataclass(frozen=True)
class StoredBooking:
    """The parts of a booking the decision depends on."""

    id: str
    payment_id: Optional[str]
    payment_status: str

    @property
    def completed(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED.value

    @classmethod
    def of(cls, booking: Booking) -> "StoredBooking":
        return cls(id=booking.id, payment_id=booking.payment_id, payment_status=booking.payment_status)


def build_redirect(base_url: str, **params: Optional[str]) -> str:
    query = urlencode({k: v for k, v in params.items() if v is not None})
    separator = "&" if "?" in base_url else "?"
    return f"{base_url}{separator}{query}"


def success_redirect(gateway: GatewayConfig, booking_id: str, payload: CallbackPayload) -> str:
    return build_redirect(
        gateway.success_url,
        bookingId=booking_id,
        txnid=payload.txnid,
        mihpayid=payload.mihpayid,
        status=GATEWAY_SUCCESS,
    )


def failure_redirect(
    gateway: GatewayConfig,
    payload: CallbackPayload,
    status: str,
    message: str,
    booking_id: Optional[str] = None,
) -> str:
    return build_redirect(
        gateway.failure_url,
        bookingId=booking_id,
        txnid=payload.txnid,
        status=status,
        message=message,
    )


def verify(gateway: GatewayConfig, payload: CallbackPayload) -> None:
    if payload.amount is None:
        raise IntegrityFailure(f"Unparsable amount for txnid {payload.txnid}")
    expected = hash_signer.response_hash(
        gateway,
        status=payload.status,
        txnid=payload.txnid,
        amount=payload.amount,
        productinfo=payload.productinfo,
        firstname=payload.firstname,
        email=payload.email,
        udfs=payload.udfs,
    )
    if not hash_signer.hashes_match(expected, payload.hash):
        raise IntegrityFailure(f"Hash mismatch for txnid {payload.txnid}")


def decide(
    booking: Optional[StoredBooking],
    payload: CallbackPayload,
    gateway: GatewayConfig,
) -> Decision:
    """Map a verified payload and the stored booking to a transition."""
    if booking is None:
        return Decision(
            action=Action.NONE,
            outcome="booking_not_found",
            redirect_url=failure_redirect(gateway, payload, "booking_not_found", NOT_FOUND_MESSAGE),
        )

    if payload.succeeded:
        if booking.completed:
            return Decision(Action.NONE, "duplicate", success_redirect(gateway, booking.id, payload))
        return Decision(Action.COMPLETE, "completed", success_redirect(gateway, booking.id, payload))

    failure_url = failure_redirect(
        gateway,
        payload,
        payload.status,
        payload.error_message or DEFAULT_FAILURE_MESSAGE,
        booking_id=booking.id,
    )
    if booking.completed:
        # Never downgrade; surface the contradiction in logs and metrics.
        return Decision(Action.NONE, "ignored_downgrade", failure_url)
    return Decision(Action.FAIL, "failed", failure_url)


async def find_booking(db: AsyncSession, payload: CallbackPayload) -> StoredBooking:
    if payload.booking_id:
        result = await db.execute(
            select(Booking).where(
                Booking.id == payload.booking_id,
                Booking.payment_id == payload.txnid,
            )
        )
        booking = result.scalar_one_or_none()
        if booking:
            return StoredBooking.of(booking)

    # Duplicate delivery after completion: payment_id now holds mihpayid.
    if payload.mihpayid:
        result = await db.execute(select(Booking).where(Booking.payment_id == payload.mihpayid))
        booking = result.scalar_one_or_none()
        if booking and booking.is_paid:
            return StoredBooking.of(booking)

    raise UpstreamInconsistency(
        f"Verified callback for txnid {payload.txnid} matches no pending booking"
    )


async def apply_decision(
    db: AsyncSession,
    decision: Decision,
    booking: StoredBooking,
    payload: CallbackPayload,
    gateway: GatewayConfig,
) -> Decision:
    guard = (
        Booking.id == booking.id,
        Booking.payment_id == payload.txnid,
        Booking.payment_status != PaymentStatus.COMPLETED.value,
    )

    if decision.action is Action.COMPLETE:
        values = {
            "payment_status": PaymentStatus.COMPLETED.value,
            "payment_method": PaymentMethod.PAYU.value,
            "payment_id": payload.gateway_txnid,
            "gateway_response": dict(payload.raw),
        }
    elif decision.action is Action.FAIL:
        values = {
            "payment_status": PaymentStatus.FAILED.value,
            "gateway_response": dict(payload.raw),
        }
    else:
        return decision

    result = await db.execute(
        update(Booking).where(*guard).values(**values).execution_options(synchronize_session=False)
    )
    if result.rowcount:
        return decision

    # Lost the race to another delivery; report what is stored now.
    current = await db.get(Booking, booking.id, populate_existing=True)
    if current is not None and current.is_paid:
        if decision.action is Action.COMPLETE:
            return Decision(Action.NONE, "duplicate", success_redirect(gateway, current.id, payload))
        return Decision(Action.NONE, "ignored_downgrade", decision.redirect_url)

    # The txnid was superseded by a newer initiation.
    return decide(None, payload, gateway)


async def reconcile(
    db: AsyncSession,
    gateway: GatewayConfig,
    form: Mapping[str, str],
) -> str:
    """
    Handle one gateway callback and return the frontend redirect URL.

    Raises InvalidInputError only when the payload lacks txnid/status/hash.
    """
    try:
        payload = CallbackPayload.from_form(form)
    except InvalidInputError:
        record_callback_outcome("rejected")
        logger.warning("callback_rejected", fields=sorted(form.keys()))
        raise

    log = logger.bind(txnid=payload.txnid, gateway_status=payload.status, booking_id=payload.booking_id)

    try:
        verify(gateway, payload)
    except IntegrityFailure:
        record_callback_outcome("hash_mismatch")
        log.error("callback_hash_mismatch")
        return build_redirect(
            gateway.failure_url,
            status="hash_mismatch",
            message=HASH_MISMATCH_MESSAGE,
        )

    try:
        booking = await find_booking(db, payload)
    except UpstreamInconsistency as exc:
        log.error("callback_booking_not_found", mihpayid=payload.mihpayid, error=exc.message)
        booking = None

    decision = decide(booking, payload, gateway)
    if booking is not None:
        decision = await apply_decision(db, decision, booking, payload, gateway)

    record_callback_outcome(decision.outcome)
    if decision.outcome == "booking_not_found":
        log.error("callback_unmatched", mihpayid=payload.mihpayid)
    elif decision.outcome == "ignored_downgrade":
        log.warning("callback_downgrade_ignored", mihpayid=payload.mihpayid)
    else:
        log.info("callback_reconciled", outcome=decision.outcome, mihpayid=payload.mihpayid)

    return decision.redirect_url
