"""Tests for data models and the status transition rule."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from relaykit.core.errors import MalformedPayload
from relaykit.models.enums import MessageStatus, NumberType, can_transition, forward_sources
from relaykit.models.number import NumberCapabilities, NumberSearchCriteria
from relaykit.models.webhook import WebhookRequest, WebhookResponse

Q = MessageStatus.QUEUED
S = MessageStatus.SENT
D = MessageStatus.DELIVERED
F = MessageStatus.FAILED
R = MessageStatus.RECEIVED


class TestCanTransition:
    @pytest.mark.parametrize(("current", "new"), [(Q, S), (S, D), (Q, D), (Q, F), (S, F)])
    def test_forward(self, current: MessageStatus, new: MessageStatus) -> None:
        assert can_transition(current, new) is True

    @pytest.mark.parametrize(
        ("current", "new"),
        [(D, S), (S, Q), (D, Q), (D, F), (F, S), (F, D), (R, S), (R, D), (R, F), (Q, R), (S, R)],
    )
    def test_backward_or_from_terminal(self, current: MessageStatus, new: MessageStatus) -> None:
        assert can_transition(current, new) is False

    @pytest.mark.parametrize("status", list(MessageStatus))
    def test_same_status_is_not_a_transition(self, status: MessageStatus) -> None:
        assert can_transition(status, status) is False

    def test_terminal_flags(self) -> None:
        assert {s for s in MessageStatus if s.is_terminal} == {D, F, R}


class TestForwardSources:
    def test_sources(self) -> None:
        assert forward_sources(S) == {Q}
        assert forward_sources(D) == {Q, S}
        assert forward_sources(F) == {Q, S}
        assert forward_sources(Q) == frozenset()
        assert forward_sources(R) == frozenset()


class TestNumberSearchCriteria:
    def test_defaults(self) -> None:
        criteria = NumberSearchCriteria()
        assert criteria.country == "US"
        assert criteria.number_type == NumberType.LOCAL
        assert criteria.prefix is None
        assert criteria.limit == 10
        assert criteria.page == 1

    def test_country_is_uppercased(self) -> None:
        assert NumberSearchCriteria(country=" ca ").country == "CA"

    @pytest.mark.parametrize("country", ["USA", "U", "1A", ""])
    def test_bad_country(self, country: str) -> None:
        with pytest.raises(ValidationError):
            NumberSearchCriteria(country=country)

    def test_blank_prefix_is_none(self) -> None:
        assert NumberSearchCriteria(prefix="  ").prefix is None

    def test_prefix_must_be_digits(self) -> None:
        with pytest.raises(ValidationError):
            NumberSearchCriteria(prefix="41a")

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, limit: int) -> None:
        with pytest.raises(ValidationError):
            NumberSearchCriteria(limit=limit)

    def test_page_starts_at_one(self) -> None:
        with pytest.raises(ValidationError):
            NumberSearchCriteria(page=0)


class TestNumberCapabilities:
    def test_satisfies(self) -> None:
        full = NumberCapabilities(sms=True, voice=True, mms=True)
        sms_only = NumberCapabilities(sms=True)
        assert full.satisfies(sms_only) is True
        assert sms_only.satisfies(full) is False
        assert sms_only.satisfies(NumberCapabilities(sms=False)) is True


class TestWebhookRequest:
    def test_header_lookup_is_case_insensitive(self) -> None:
        request = WebhookRequest(headers={"X-Twilio-Signature": "abc"})
        assert request.header("x-twilio-signature") == "abc"
        assert request.header("missing") is None

    def test_form(self) -> None:
        request = WebhookRequest(body=b"From=%2B15551234567&Body=&To=%2B14155550100")
        assert request.form() == {"From": "+15551234567", "Body": "", "To": "+14155550100"}

    def test_json(self) -> None:
        assert WebhookRequest(body=b'{"a": 1}').json() == {"a": 1}

    def test_empty_json_body_is_empty_object(self) -> None:
        assert WebhookRequest().json() == {}

    @pytest.mark.parametrize("body", [b"{not json", b"[1, 2]", b'"text"'])
    def test_bad_json(self, body: bytes) -> None:
        with pytest.raises(MalformedPayload):
            WebhookRequest(body=body).json()

    def test_bad_utf8_form(self) -> None:
        with pytest.raises(MalformedPayload):
            WebhookRequest(body=b"\xff\xfe").form()


class TestWebhookResponse:
    def test_ok(self) -> None:
        assert WebhookResponse().ok is True
        assert WebhookResponse(status_code=403).ok is False
