import json

import httpx
import respx

from voipbits.acrobits import ACROBITS_PUSH_URL, AcrobitsPushSender


@respx.mock
def test_notification_body(http_client):
    route = respx.post(ACROBITS_PUSH_URL).mock(return_value=httpx.Response(200, json={}))

    result = AcrobitsPushSender(http_client).send("app", "device-tok", "sel", "5559876543", "hello")

    assert result.ok
    assert json.loads(route.calls.last.request.content) == {
        "verb": "NotifyTextMessage",
        "Selector": "sel",
        "Badge": "1",
        "UserName": "5559876543",
        "Message": "hello",
        "AppId": "app",
        "DeviceToken": "device-tok",
    }


@respx.mock
def test_gateway_rejection_is_a_failed_result(http_client):
    respx.post(ACROBITS_PUSH_URL).mock(return_value=httpx.Response(410, text="unregistered"))

    result = AcrobitsPushSender(http_client).send("app", "tok", "sel", "from", "msg")

    assert not result.ok
    assert result.rejected
    assert result.status_code == 410


@respx.mock
def test_server_error_is_failed_but_not_rejected(http_client):
    respx.post(ACROBITS_PUSH_URL).mock(return_value=httpx.Response(503))

    result = AcrobitsPushSender(http_client).send("app", "tok", "sel", "from", "msg")

    assert not result.ok
    assert not result.rejected


@respx.mock
def test_timeout_is_a_failed_result(http_client):
    respx.post(ACROBITS_PUSH_URL).mock(side_effect=httpx.ConnectTimeout("slow"))

    result = AcrobitsPushSender(http_client).send("app", "tok", "sel", "from", "msg")

    assert not result.ok
    assert result.status_code is None
    assert result.error == "timeout"
