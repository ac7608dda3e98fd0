import json

import pytest
import requests

from stitchquote.services import email as email_module
from stitchquote.services.email import POSTMARK_SEND_URL, EmailError, send_postmark_email


class FakeResponse:
    def __init__(self, status_code=200, data=None, text=""):
        self.status_code = status_code
        self._data = data
        self.text = text

    def json(self):
        if self._data is None:
            raise ValueError("no json")
        return self._data


@pytest.fixture
def posted(monkeypatch):
    calls = []
    reply = {"response": FakeResponse(200, {"MessageID": "pm-123", "ErrorCode": 0})}

    def fake_post(url, headers, data, timeout):
        calls.append({"url": url, "headers": headers, "payload": json.loads(data), "timeout": timeout})
        if isinstance(reply["response"], Exception):
            raise reply["response"]
        return reply["response"]

    monkeypatch.setattr(email_module.requests, "post", fake_post)
    return calls, reply


def _send(**overrides):
    kwargs = dict(
        server_token="tok",
        from_address="quotes@example.com",
        to="ann@example.com",
        subject="Hi",
        html_body="<p>Hi</p>",
    )
    kwargs.update(overrides)
    return send_postmark_email(**kwargs)


def test_send_builds_postmark_payload(posted):
    calls, _ = posted
    attachment = {"Name": "render.png", "Content": "AAAA", "ContentType": "image/png", "ContentID": "cid:render.png"}

    message_id = _send(reply_to="shop@example.com", text_body="Hi", attachments=[attachment])

    assert message_id == "pm-123"
    call = calls[0]
    assert call["url"] == POSTMARK_SEND_URL
    assert call["headers"]["X-Postmark-Server-Token"] == "tok"
    assert call["payload"]["ReplyTo"] == "shop@example.com"
    assert call["payload"]["Attachments"] == [attachment]
    assert call["payload"]["MessageStream"] == "outbound"


def test_optional_fields_are_left_out(posted):
    calls, _ = posted
    _send()
    payload = calls[0]["payload"]
    assert "ReplyTo" not in payload
    assert "Attachments" not in payload
    assert "TextBody" not in payload


def test_missing_configuration(posted):
    calls, _ = posted
    with pytest.raises(EmailError, match="postmark_not_configured"):
        _send(server_token=None)
    with pytest.raises(EmailError, match="POSTMARK_FROM"):
        _send(from_address="")
    assert calls == []


def test_rejected_send_raises(posted):
    _, reply = posted
    reply["response"] = FakeResponse(422, {"ErrorCode": 406, "Message": "Inactive recipient"})
    with pytest.raises(EmailError, match="postmark_send_failed:422"):
        _send()


def test_non_json_error_body(posted):
    _, reply = posted
    reply["response"] = FakeResponse(502, None, text="Bad Gateway")
    with pytest.raises(EmailError, match="Bad Gateway"):
        _send()


def test_network_error_raises(posted):
    _, reply = posted
    reply["response"] = requests.ConnectionError("connection refused")
    with pytest.raises(EmailError, match="postmark_network_error:ConnectionError"):
        _send()


def test_missing_message_id(posted):
    _, reply = posted
    reply["response"] = FakeResponse(200, {"ErrorCode": 0})
    with pytest.raises(EmailError, match="no_message_id"):
        _send()
