"""
Keyed SHA-512 integrity hashes for the PayU round-trip.

PayU fixes both field sequences byte-for-byte, so they live here side by
side and share one normalisation rule: a missing value is an empty string,
never "None".

Outbound (request) sequence:
    key|txnid|amount|productinfo|firstname|email|udf1|...|udf10|salt

Inbound (response) sequence, user-defined fields reversed:
    salt|status|udf10|...|udf1|email|firstname|productinfo|amount|txnid|key

The outbound amount is the stored total as is (1311). PayU echoes it with
two decimals (1311.00), so only the inbound amount goes through
format_amount.
"""

import hashlib
import hmac
from decimal import Decimal, InvalidOperation
from typing import Iterable, Mapping, Optional

from ticketpay.core.config import GatewayConfig
from ticketpay.core.exceptions import InvalidInputError

DELIMITER = "|"
UDF_SLOTS = 10


def as_field(value: Optional[object]) -> str:
    if value is None:
        return ""
    return str(value)


def format_amount(value) -> str:
    """Render an amount with exactly two decimals, e.g. 1311 -> '1311.00'."""
    try:
        amount = Decimal(str(value).strip())
        if amount.is_finite():
            return str(amount.quantize(Decimal("0.01")))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidInputError(f"Malformed amount: {value!r}") from exc
    raise InvalidInputError(f"Malformed amount: {value!r}")


def sign(secret: str, fields: Iterable[Optional[object]]) -> str:
    if not secret:
        raise ValueError("A gateway secret is required to sign fields")
    message = DELIMITER.join(as_field(f) for f in fields)
    return hashlib.sha512(message.encode("utf-8")).hexdigest()


def udf_values(source: Mapping[str, Optional[object]]) -> list[str]:
    """udf1..udf10 in ascending order."""
    return [as_field(source.get(f"udf{i}")) for i in range(1, UDF_SLOTS + 1)]


def request_hash(
    gateway: GatewayConfig,
    *,
    txnid: str,
    amount: str,
    productinfo: str,
    firstname: str,
    email: str,
    udfs: Mapping[str, Optional[object]],
) -> str:
    fields = [
        gateway.merchant_key,
        txnid,
        amount,
        productinfo,
        firstname,
        email,
        *udf_values(udfs),
        gateway.salt,
    ]
    return sign(gateway.salt, fields)


def response_hash(
    gateway: GatewayConfig,
    *,
    status: str,
    txnid: str,
    amount: str,
    productinfo: Optional[str],
    firstname: Optional[str],
    email: Optional[str],
    udfs: Mapping[str, Optional[object]],
) -> str:
    fields = [
        gateway.salt,
        status,
        *reversed(udf_values(udfs)),
        email,
        firstname,
        productinfo,
        format_amount(amount),
        txnid,
        gateway.merchant_key,
    ]
    return sign(gateway.salt, fields)


def hashes_match(expected: str, supplied: Optional[str]) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(
        expected.lower().encode("utf-8"),
        supplied.strip().lower().encode("utf-8"),
    )
