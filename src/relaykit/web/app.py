"""FastAPI application exposing RelayKit webhooks, provisioning and send."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import FastAPI, Header, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from relaykit._version import __version__
from relaykit.core.errors import (
    AttachmentFailed,
    Forbidden,
    InvalidInput,
    NumberAlreadyOwned,
    NumberUnavailable,
    ProviderError,
    ProviderUnavailable,
    RecipientOptedOut,
    RelayKitError,
    SendRejected,
    StoreError,
    Unauthorized,
    UnknownProviderError,
)
from relaykit.core.framework import RelayKit
from relaykit.models.enums import NumberType
from relaykit.models.message import Message
from relaykit.models.number import (
    AvailableNumberCandidate,
    NumberCapabilities,
    NumberSearchCriteria,
    OwnedNumber,
)
from relaykit.models.webhook import WebhookRequest, WebhookResponse

logger = logging.getLogger("relaykit.web")

CallerId = Annotated[str | None, Header(alias="X-Caller-Id")]

# First match wins, so subclasses come before their bases.
_STATUS_CODES: list[tuple[type[RelayKitError], int]] = [
    (AttachmentFailed, status.HTTP_202_ACCEPTED),
    (RecipientOptedOut, status.HTTP_409_CONFLICT),
    (SendRejected, 422),
    (InvalidInput, 422),
    (Unauthorized, status.HTTP_401_UNAUTHORIZED),
    (Forbidden, status.HTTP_403_FORBIDDEN),
    (UnknownProviderError, status.HTTP_404_NOT_FOUND),
    (NumberUnavailable, status.HTTP_409_CONFLICT),
    (NumberAlreadyOwned, status.HTTP_409_CONFLICT),
    (ProviderUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
    (StoreError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ProviderError, status.HTTP_502_BAD_GATEWAY),
]


def status_code_for(exc: RelayKitError) -> int:
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


class PurchaseRequest(BaseModel):
    """Buy a specific candidate, or search with ``criteria`` and buy the first."""

    provider: str
    candidate: AvailableNumberCandidate | None = None
    criteria: NumberSearchCriteria | None = None
    allow_additional: bool = False


class SendRequest(BaseModel):
    to: str
    body: str
    provider: str | None = None


def _to_response(result: WebhookResponse) -> Response:
    return Response(
        content=result.body,
        status_code=result.status_code,
        media_type=result.content_type,
    )


def create_app(kit: RelayKit, *, public_base_url: str | None = None) -> FastAPI:
    """Build the HTTP surface for *kit*.

    Args:
        kit: The configured RelayKit instance. It is closed on shutdown.
        public_base_url: Externally visible scheme and host (e.g.
            ``https://sms.example.com``). Twilio signs the URL it called, so
            set this when running behind a proxy that rewrites the host.

    Caller identity for account endpoints is read from the ``X-Caller-Id``
    header, which an upstream gateway is expected to set after
    authenticating the caller.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await kit.close()

    app = FastAPI(title="RelayKit", version=__version__, lifespan=lifespan)

    @app.exception_handler(RelayKitError)
    async def _relaykit_error(request: Request, exc: RelayKitError) -> JSONResponse:
        code = status_code_for(exc)
        content: dict[str, Any] = {"detail": str(exc), "error": type(exc).__name__}
        if isinstance(exc, AttachmentFailed):
            content["number"] = exc.owned_number.model_dump(mode="json")
        if code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=code, content=content)

    async def _webhook_request(request: Request) -> WebhookRequest:
        url = str(request.url)
        if public_base_url:
            url = public_base_url.rstrip("/") + request.url.path
            if request.url.query:
                url = f"{url}?{request.url.query}"
        return WebhookRequest(
            url=url,
            method=request.method,
            headers=dict(request.headers),
            body=await request.body(),
        )

    # -- Webhooks --

    @app.post("/webhooks/{provider}/inbound")
    async def inbound_webhook(provider: str, request: Request) -> Response:
        result = await kit.handle_inbound(provider, await _webhook_request(request))
        return _to_response(result)

    @app.post("/webhooks/{provider}/status")
    async def status_webhook(provider: str, request: Request) -> Response:
        result = await kit.handle_status(provider, await _webhook_request(request))
        return _to_response(result)

    # -- Provisioning --

    @app.get("/accounts/{account_id}/numbers/available")
    async def search_numbers(
        account_id: str,
        provider: str,
        x_caller_id: CallerId = None,
        country: str = "US",
        number_type: NumberType = NumberType.LOCAL,
        prefix: str | None = None,
        sms: bool = True,
        voice: bool = False,
        mms: bool = False,
        limit: int = 10,
        page: int = 1,
    ) -> list[AvailableNumberCandidate]:
        try:
            criteria = NumberSearchCriteria(
                country=country,
                number_type=number_type,
                prefix=prefix,
                capabilities=NumberCapabilities(sms=sms, voice=voice, mms=mms),
                limit=limit,
                page=page,
            )
        except ValidationError as exc:
            raise InvalidInput(str(exc)) from exc
        return await kit.search_numbers(x_caller_id, account_id, provider, criteria)

    @app.post("/accounts/{account_id}/numbers", status_code=status.HTTP_201_CREATED)
    async def purchase_number(
        account_id: str,
        payload: PurchaseRequest,
        x_caller_id: CallerId = None,
    ) -> OwnedNumber:
        if payload.candidate is not None:
            return await kit.purchase_number(
                x_caller_id,
                account_id,
                payload.provider,
                payload.candidate,
                allow_additional=payload.allow_additional,
            )
        if payload.criteria is not None:
            return await kit.provision_number(
                x_caller_id,
                account_id,
                payload.provider,
                payload.criteria,
                allow_additional=payload.allow_additional,
            )
        raise InvalidInput("Either candidate or criteria is required")

    @app.post("/accounts/{account_id}/numbers/{phone_number}/attach")
    async def attach_number(
        account_id: str,
        phone_number: str,
        x_caller_id: CallerId = None,
    ) -> OwnedNumber:
        return await kit.retry_attachment(
            phone_number, caller_id=x_caller_id, account_id=account_id
        )

    # -- Messaging --

    @app.post("/accounts/{account_id}/messages", status_code=status.HTTP_201_CREATED)
    async def send_message(
        account_id: str,
        payload: SendRequest,
        x_caller_id: CallerId = None,
    ) -> Message:
        await kit.provisioner.authorize(x_caller_id, account_id)
        return await kit.send_message(account_id, payload.to, payload.body, payload.provider)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "providers": kit.providers}

    return app
