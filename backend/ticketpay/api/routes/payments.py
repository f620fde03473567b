"""
Gateway-facing callback endpoint (PayU surl/furl).

The gateway gets a redirect for every outcome it can be told about.
Only a payload we cannot even identify is answered with 400.
"""

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ticketpay.core.config import GatewayConfig, get_gateway_config
from ticketpay.core.exceptions import InvalidInputError
from ticketpay.core.metrics import callback_latency
from ticketpay.db.session import get_db
from ticketpay.services.callback_service import reconcile

router = APIRouter(tags=["Payments"])


async def _callback_fields(request: Request) -> dict[str, str]:
    if request.method == "GET":
        return dict(request.query_params)
    form = await request.form()
    return {key: value for key, value in form.items() if isinstance(value, str)}


@router.api_route("/payment-callback", methods=["GET", "POST"], include_in_schema=False)
async def payment_callback(
    request: Request,
    db: AsyncSession = Depends(get_db),
    gateway: GatewayConfig = Depends(get_gateway_config),
):
    with callback_latency.time():
        fields = await _callback_fields(request)
        try:
            redirect_url = await reconcile(db, gateway, fields)
        except InvalidInputError:
            return PlainTextResponse("Missing Parameters", status_code=status.HTTP_400_BAD_REQUEST)
    return RedirectResponse(redirect_url, status_code=status.HTTP_303_SEE_OTHER)
