"""Twilio adapter: REST API with HMAC-SHA1 signed, form-encoded webhooks."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from collections.abc import Iterable, Mapping
from typing import Any

import httpx

from relaykit.core.errors import (
    InvalidCriteria,
    MalformedPayload,
    NumberUnavailable,
    ProviderError,
    ProviderUnavailable,
    SendRejected,
)
from relaykit.models.enums import MessageStatus, NumberType
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
from relaykit.providers.twilio.config import TwilioConfig

logger = logging.getLogger("relaykit.providers.twilio")

SIGNATURE_HEADER = "X-Twilio-Signature"

_TYPE_PATHS = {
    NumberType.LOCAL: "Local",
    NumberType.TOLL_FREE: "TollFree",
    NumberType.MOBILE: "Mobile",
}

_STATUS_MAP = {
    "accepted": MessageStatus.QUEUED,
    "scheduled": MessageStatus.QUEUED,
    "queued": MessageStatus.QUEUED,
    "sending": MessageStatus.QUEUED,
    "sent": MessageStatus.SENT,
    "delivered": MessageStatus.DELIVERED,
    "failed": MessageStatus.FAILED,
    "undelivered": MessageStatus.FAILED,
    "canceled": MessageStatus.FAILED,
}

# "Phone number is already in the messaging service"
_ALREADY_IN_SERVICE = 21710


def map_twilio_status(raw: str) -> MessageStatus:
    """Map a Twilio ``MessageStatus``; unknown values become ``failed``."""
    return _STATUS_MAP.get(raw.strip().lower(), MessageStatus.FAILED)


def _capabilities(data: dict[str, Any]) -> NumberCapabilities:
    # Available numbers use "SMS"/"MMS", incoming numbers use "sms"/"mms".
    return NumberCapabilities(
        sms=bool(data.get("sms", data.get("SMS", False))),
        voice=bool(data.get("voice", data.get("Voice", False))),
        mms=bool(data.get("mms", data.get("MMS", False))),
    )


def _error_detail(resp: httpx.Response) -> tuple[int | None, str]:
    try:
        data = resp.json()
    except ValueError:
        return None, f"http_{resp.status_code}"
    code = data.get("code")
    return (int(code) if code is not None else None), str(
        data.get("message") or f"http_{resp.status_code}"
    )


class TwilioProvider:
    """Provider adapter over the Twilio REST API."""

    def __init__(self, config: TwilioConfig) -> None:
        self._config = config
        self._client = httpx.AsyncClient(timeout=config.timeout)

    @property
    def name(self) -> str:
        return "twilio"

    @property
    def _auth(self) -> tuple[str, str]:
        # Twilio uses HTTP Basic auth
        return (self._config.account_sid, self._config.auth_token.get_secret_value())

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(
                method, url, auth=self._auth, params=params, data=data
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
        url = (
            f"{self._config.account_url}/AvailablePhoneNumbers/"
            f"{criteria.country}/{_TYPE_PATHS[criteria.number_type]}.json"
        )
        params: dict[str, Any] = {
            "PageSize": criteria.limit,
            # Twilio pages are zero-based
            "Page": criteria.page - 1,
        }
        prefix = criteria.prefix
        if prefix:
            if criteria.country in ("US", "CA") and len(prefix) == 3:
                params["AreaCode"] = prefix
            else:
                params["Contains"] = f"{prefix}*"
        caps = criteria.capabilities
        if caps.sms:
            params["SmsEnabled"] = "true"
        if caps.voice:
            params["VoiceEnabled"] = "true"
        if caps.mms:
            params["MmsEnabled"] = "true"

        resp = await self._request("GET", url, params=params)
        if resp.status_code in (400, 404):
            code, message = _error_detail(resp)
            raise InvalidCriteria(f"twilio_{code}: {message}" if code else message)
        if not resp.is_success:
            raise ProviderUnavailable(self.name, f"http_{resp.status_code}")

        candidates: list[AvailableNumberCandidate] = []
        for item in resp.json().get("available_phone_numbers", []):
            number = to_e164(item.get("phone_number"))
            if number is None:
                continue
            candidates.append(
                AvailableNumberCandidate(
                    provider=self.name,
                    phone_number=number,
                    # Twilio has no separate reservation token; the number is the handle.
                    availability_id=number,
                    region=item.get("region") or item.get("iso_country"),
                    capabilities=_capabilities(item.get("capabilities", {})),
                )
            )
        return candidates

    async def purchase_number(self, candidate: AvailableNumberCandidate) -> OwnedNumber:
        data = {"PhoneNumber": candidate.availability_id}
        if self._config.sms_url:
            data["SmsUrl"] = self._config.sms_url
        if self._config.status_callback_url:
            data["StatusCallback"] = self._config.status_callback_url

        resp = await self._request(
            "POST", f"{self._config.account_url}/IncomingPhoneNumbers.json", data=data
        )
        if not resp.is_success:
            code, message = _error_detail(resp)
            raise NumberUnavailable(self.name, f"twilio_{code}: {message}")

        payload = resp.json()
        sid = payload.get("sid")
        if not sid:
            raise ProviderUnavailable(self.name, "purchase response without sid")
        logger.info("Purchased Twilio number %s (%s)", candidate.phone_number, sid)
        return OwnedNumber(
            phone_number=to_e164(payload.get("phone_number")) or candidate.phone_number,
            provider=self.name,
            provider_number_id=sid,
            capabilities=_capabilities(payload.get("capabilities", {})),
        )

    async def attach_to_messaging_group(self, owned: OwnedNumber) -> OwnedNumber:
        service_sid = self._config.messaging_service_sid
        if not service_sid:
            return owned.model_copy(update={"attached": True})

        resp = await self._request(
            "POST",
            f"{self._config.messaging_api_base}/Services/{service_sid}/PhoneNumbers",
            data={"PhoneNumberSid": owned.provider_number_id},
        )
        if not resp.is_success:
            code, message = _error_detail(resp)
            if resp.status_code != 409 and code != _ALREADY_IN_SERVICE:
                raise ProviderError(self.name, f"twilio_{code}: {message}")
            logger.debug("Number %s already in service %s", owned.phone_number, service_sid)
        return owned.model_copy(update={"attached": True, "messaging_group_id": service_sid})

    # -- Messages --

    async def send_message(self, from_number: str, to_number: str, body: str) -> str:
        data: dict[str, str] = {"To": to_number, "Body": body}
        # Use MessagingServiceSid if provided, otherwise use From number
        if self._config.messaging_service_sid:
            data["MessagingServiceSid"] = self._config.messaging_service_sid
        else:
            data["From"] = from_number
        if self._config.status_callback_url:
            data["StatusCallback"] = self._config.status_callback_url

        resp = await self._request("POST", self._config.messages_url, data=data)
        if not resp.is_success:
            code, message = _error_detail(resp)
            raise SendRejected(self.name, f"twilio_{code}: {message}" if code else message)

        sid = resp.json().get("sid")
        if not sid:
            raise ProviderUnavailable(self.name, "send response without sid")
        return str(sid)

    # -- Webhooks --

    def compute_signature(
        self, url: str, params: Mapping[str, str] | Iterable[tuple[str, str]]
    ) -> str:
        """Twilio signature: base64(HMAC-SHA1(auth_token, url + sorted k+v)).

        *params* may be a mapping or the raw form pairs; every value of a
        repeated key is signed, in sorted order.
        """
        pairs = params.items() if isinstance(params, Mapping) else params
        values: dict[str, list[str]] = {}
        for key, value in pairs:
            values.setdefault(key, []).append(value)
        validation_string = url
        for key in sorted(values):
            for value in sorted(set(values[key])):
                validation_string += key + value
        return base64.b64encode(
            hmac.new(
                self._config.auth_token.get_secret_value().encode(),
                validation_string.encode(),
                hashlib.sha1,
            ).digest()
        ).decode()

    def verify_inbound_signature(self, request: WebhookRequest) -> bool:
        signature = request.header(SIGNATURE_HEADER)
        if not signature or not request.url:
            return False
        try:
            params = request.form_pairs()
        except MalformedPayload:
            return False
        expected = self.compute_signature(request.url, params)
        return hmac.compare_digest(expected, signature)

    def parse_inbound_payload(self, request: WebhookRequest) -> InboundPayload:
        form = request.form()
        sid = form.get("MessageSid") or form.get("SmsSid")
        sender = form.get("From")
        recipient = form.get("To")
        if not (sid and sender and recipient):
            raise MalformedPayload("Twilio inbound webhook requires MessageSid, From and To")

        media: list[str] = []
        try:
            num_media = int(form.get("NumMedia", "0") or 0)
        except ValueError:
            num_media = 0
        for i in range(num_media):
            if url := form.get(f"MediaUrl{i}"):
                media.append(url)

        return InboundPayload(
            from_number=sender,
            to_number=recipient,
            body=form.get("Body", ""),
            provider_message_id=sid,
            media_urls=media,
        )

    def parse_status_payload(self, request: WebhookRequest) -> StatusPayload:
        form = request.form()
        sid = form.get("MessageSid") or form.get("SmsSid")
        raw_status = form.get("MessageStatus") or form.get("SmsStatus")
        if not sid or raw_status is None:
            raise MalformedPayload("Twilio status webhook requires MessageSid and MessageStatus")
        return StatusPayload(
            provider_message_id=sid,
            status=map_twilio_status(raw_status),
            raw_status=raw_status,
            error_code=form.get("ErrorCode") or None,
            error_message=form.get("ErrorMessage") or None,
        )

    def acknowledge(self) -> WebhookResponse:
        return WebhookResponse(body="<Response></Response>", content_type="text/xml")

    async def close(self) -> None:
        await self._client.aclose()
