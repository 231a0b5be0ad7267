"""Telnyx adapter: REST API v2 with JSON webhooks."""

from __future__ import annotations

import base64
import logging
import time
from typing import Any

import httpx
from pydantic import ValidationError

from relaykit.core.errors import (
    InvalidCriteria,
    MalformedPayload,
    NumberUnavailable,
    ProviderError,
    ProviderUnavailable,
    SendRejected,
)
from relaykit.models.enums import MessageStatus
from relaykit.models.number import (
    AvailableNumberCandidate,
    NumberCapabilities,
    NumberSearchCriteria,
    OwnedNumber,
)
from relaykit.models.webhook import (
    InboundPayload,
    StatusPayload,
    WebhookRequest,
    WebhookResponse,
)
from relaykit.phone import to_e164
from relaykit.providers.telnyx.config import TelnyxConfig

logger = logging.getLogger("relaykit.providers.telnyx")

SIGNATURE_HEADER = "Telnyx-Signature-Ed25519"
TIMESTAMP_HEADER = "Telnyx-Timestamp"

_STATUS_MAP = {
    "queued": MessageStatus.QUEUED,
    "sending": MessageStatus.QUEUED,
    "sent": MessageStatus.SENT,
    "delivery_unconfirmed": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
}


def map_telnyx_status(raw: str) -> MessageStatus:
    """Map a Telnyx delivery status; anything unrecognised becomes ``failed``."""
    return _STATUS_MAP.get(raw.strip().lower(), MessageStatus.FAILED)


def _error_detail(resp: httpx.Response) -> str:
    try:
        errors = resp.json().get("errors") or []
    except ValueError:
        errors = []
    if errors and isinstance(errors[0], dict):
        first = errors[0]
        return str(first.get("detail") or first.get("title") or first.get("code"))
    return f"http_{resp.status_code}"


def _region(item: dict[str, Any]) -> str | None:
    regions = item.get("region_information") or []
    for region in regions:
        if region.get("region_type") == "state":
            return region.get("region_name")
    return regions[0].get("region_name") if regions else None


def _endpoint(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise MalformedPayload("Telnyx endpoint must be an object")
    return value


def _first_recipient(payload: dict[str, Any]) -> dict[str, Any]:
    recipients = payload.get("to") or []
    if not isinstance(recipients, list):
        raise MalformedPayload("Telnyx \"to\" must be a list")
    return _endpoint(recipients[0]) if recipients else {}


def _capabilities(item: dict[str, Any]) -> NumberCapabilities:
    names = {f.get("name") for f in item.get("features", []) if isinstance(f, dict)}
    return NumberCapabilities(sms="sms" in names, voice="voice" in names, mms="mms" in names)


class TelnyxProvider:
    """Provider adapter over the Telnyx REST API."""

    def __init__(self, config: TelnyxConfig) -> None:
        self._config = config
        self._client = httpx.AsyncClient(timeout=config.timeout)

    @property
    def name(self) -> str:
        return "telnyx"

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key.get_secret_value()}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        url = f"{self._config.api_base}{path}"
        try:
            resp = await self._client.request(
                method, url, headers=self._headers, params=params, json=json
            )
        except httpx.TimeoutException as exc:
            raise ProviderUnavailable(self.name, "timeout") from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(self.name, str(exc) or type(exc).__name__) from exc

        status = resp.status_code
        if status == 429 or status >= 500:
            raise ProviderUnavailable(self.name, f"http_{status}")
        if status in (401, 403):
            raise ProviderUnavailable(self.name, "auth_error")
        return resp

    # -- Numbers --

    async def search_available_numbers(
        self, criteria: NumberSearchCriteria
    ) -> list[AvailableNumberCandidate]:
        params: list[tuple[str, str]] = [
            ("filter[country_code]", criteria.country),
            ("filter[phone_number_type]", criteria.number_type.value),
            ("filter[limit]", str(criteria.limit)),
        ]
        caps = criteria.capabilities
        for feature, wanted in (("sms", caps.sms), ("voice", caps.voice), ("mms", caps.mms)):
            if wanted:
                params.append(("filter[features][]", feature))
        prefix = criteria.prefix
        if prefix:
            if criteria.country in ("US", "CA") and len(prefix) == 3:
                params.append(("filter[national_destination_code]", prefix))
            else:
                params.append(("filter[phone_number][starts_with]", prefix))
        if criteria.page > 1:
            params.append(("page[number]", str(criteria.page)))
            params.append(("page[size]", str(criteria.limit)))

        resp = await self._request("GET", "/available_phone_numbers", params=params)
        if resp.status_code in (400, 404, 422):
            raise InvalidCriteria(_error_detail(resp))
        if not resp.is_success:
            raise ProviderUnavailable(self.name, f"http_{resp.status_code}")

        candidates: list[AvailableNumberCandidate] = []
        for item in resp.json().get("data", []):
            number = to_e164(item.get("phone_number"))
            if number is None:
                continue
            candidates.append(
                AvailableNumberCandidate(
                    provider=self.name,
                    phone_number=number,
                    availability_id=number,
                    region=_region(item),
                    capabilities=_capabilities(item),
                )
            )
        return candidates

    async def purchase_number(self, candidate: AvailableNumberCandidate) -> OwnedNumber:
        order: dict[str, Any] = {"phone_numbers": [{"phone_number": candidate.availability_id}]}
        if self._config.connection_id:
            order["connection_id"] = self._config.connection_id
        if self._config.messaging_profile_id:
            order["messaging_profile_id"] = self._config.messaging_profile_id

        resp = await self._request("POST", "/number_orders", json=order)
        if not resp.is_success:
            raise NumberUnavailable(self.name, _error_detail(resp))

        ordered = (resp.json().get("data", {}).get("phone_numbers") or [{}])[0]
        if ordered.get("status") == "failed":
            raise NumberUnavailable(self.name, f"order failed for {candidate.phone_number}")

        number = to_e164(ordered.get("phone_number")) or candidate.phone_number
        number_id = await self._lookup_number_id(number) or ordered.get("id")
        if not number_id:
            raise ProviderUnavailable(self.name, "order response without phone number id")
        logger.info("Ordered Telnyx number %s (%s)", number, number_id)
        return OwnedNumber(
            phone_number=number,
            provider=self.name,
            provider_number_id=str(number_id),
            capabilities=candidate.capabilities,
        )

    async def _lookup_number_id(self, phone_number: str) -> str | None:
        """Resolve the phone-number resource id. Failure is not fatal."""
        try:
            resp = await self._request(
                "GET", "/phone_numbers", params={"filter[phone_number]": phone_number}
            )
        except ProviderUnavailable as exc:
            logger.warning("Could not look up Telnyx id for %s: %s", phone_number, exc)
            return None
        if not resp.is_success:
            return None
        data = resp.json().get("data") or []
        return str(data[0]["id"]) if data and data[0].get("id") else None

    async def attach_to_messaging_group(self, owned: OwnedNumber) -> OwnedNumber:
        profile_id = self._config.messaging_profile_id
        if not profile_id:
            return owned.model_copy(update={"attached": True})

        body = {"messaging_profile_id": profile_id}
        number_id = owned.provider_number_id
        resp = await self._request("PATCH", f"/phone_numbers/{number_id}/messaging", json=body)
        if resp.status_code == 404:
            # Order ids are not phone-number ids; resolve and try once more.
            resolved = await self._lookup_number_id(owned.phone_number)
            if resolved and resolved != number_id:
                number_id = resolved
                resp = await self._request(
                    "PATCH", f"/phone_numbers/{number_id}/messaging", json=body
                )
        if not resp.is_success:
            raise ProviderError(self.name, _error_detail(resp))
        return owned.model_copy(
            update={
                "attached": True,
                "messaging_group_id": profile_id,
                "provider_number_id": number_id,
            }
        )

    # -- Messages --

    async def send_message(self, from_number: str, to_number: str, body: str) -> str:
        payload: dict[str, Any] = {"from": from_number, "to": to_number, "text": body}
        if self._config.messaging_profile_id:
            payload["messaging_profile_id"] = self._config.messaging_profile_id

        resp = await self._request("POST", "/messages", json=payload)
        if not resp.is_success:
            raise SendRejected(self.name, _error_detail(resp))

        message_id = resp.json().get("data", {}).get("id")
        if not message_id:
            raise ProviderUnavailable(self.name, "send response without message id")
        return str(message_id)

    # -- Webhooks --

    def verify_inbound_signature(self, request: WebhookRequest) -> bool:
        """Verify a Telnyx webhook signature using Ed25519.

        Telnyx signs ``timestamp|body``. Without a configured public key there
        is nothing to verify and the request is accepted.

        Raises:
            ImportError: If PyNaCl is not installed.
        """
        if not self._config.public_key:
            return True

        signature = request.header(SIGNATURE_HEADER)
        timestamp = request.header(TIMESTAMP_HEADER)
        if not signature or not timestamp:
            return False

        tolerance = self._config.signature_tolerance_seconds
        if tolerance is not None:
            try:
                age = abs(time.time() - int(timestamp))
            except ValueError:
                return False
            if age > tolerance:
                logger.warning("Rejecting Telnyx webhook signed %ds ago", age)
                return False

        try:
            from nacl.exceptions import BadSignatureError
            from nacl.signing import VerifyKey
        except ImportError as exc:
            raise ImportError(
                "PyNaCl is required for Telnyx signature verification. "
                "Install it with: pip install relaykit[telnyx]"
            ) from exc

        try:
            verify_key = VerifyKey(base64.b64decode(self._config.public_key))
            signed_payload = f"{timestamp}|".encode() + request.body
            verify_key.verify(signed_payload, base64.b64decode(signature))
        except (BadSignatureError, ValueError):
            return False
        return True

    def _event(self, request: WebhookRequest) -> tuple[str, dict[str, Any]]:
        data = request.json().get("data")
        if not isinstance(data, dict):
            raise MalformedPayload("Telnyx webhook without data object")
        payload = data.get("payload")
        if not isinstance(payload, dict):
            raise MalformedPayload("Telnyx webhook without data.payload")
        return str(data.get("event_type") or ""), payload

    def parse_inbound_payload(self, request: WebhookRequest) -> InboundPayload:
        event_type, payload = self._event(request)
        if event_type and event_type != "message.received":
            raise MalformedPayload(f"Not an inbound message event: {event_type}")

        sender = _endpoint(payload.get("from")).get("phone_number")
        recipient = _first_recipient(payload).get("phone_number")
        message_id = payload.get("id")
        if not (sender and recipient and message_id):
            raise MalformedPayload("Telnyx inbound webhook requires id, from and to")

        text = payload.get("text")
        if text is not None and not isinstance(text, str):
            raise MalformedPayload("Telnyx inbound text must be a string")

        media = payload.get("media") or []
        if not isinstance(media, list):
            raise MalformedPayload("Telnyx inbound media must be a list")

        try:
            return InboundPayload(
                from_number=sender,
                to_number=recipient,
                body=text or "",
                provider_message_id=str(message_id),
                media_urls=[m["url"] for m in media if isinstance(m, dict) and m.get("url")],
            )
        except ValidationError as exc:
            raise MalformedPayload(f"Invalid Telnyx inbound payload: {exc}") from exc

    def parse_status_payload(self, request: WebhookRequest) -> StatusPayload:
        event_type, payload = self._event(request)
        message_id = payload.get("id")
        if not message_id or isinstance(message_id, (dict, list)):
            raise MalformedPayload("Telnyx status webhook without message id")

        raw_status = event_type.removeprefix("message.")
        recipient_status = _first_recipient(payload).get("status")
        if recipient_status:
            raw_status = str(recipient_status)

        errors = payload.get("errors")
        first = errors[0] if isinstance(errors, list) and errors else {}
        if not isinstance(first, dict):
            first = {}
        detail = first.get("detail") or first.get("title")
        return StatusPayload(
            provider_message_id=str(message_id),
            status=map_telnyx_status(raw_status),
            raw_status=raw_status,
            error_code=str(first["code"]) if first.get("code") else None,
            error_message=str(detail) if detail else None,
        )

    def acknowledge(self) -> WebhookResponse:
        return WebhookResponse(body='{"ok": true}', content_type="application/json")

    async def close(self) -> None:
        await self._client.aclose()
