import json

import pytest

from voipbits import runtime as runtime_module
from voipbits import settings as settings_module
from voipbits.push_tokens import PushTokenRegistry
from voipbits.settings import Settings, load_settings

ENV_VARS = (
    "SERVER_URL",
    "PRIVATE_KEY",
    "KEY_SECRET_NAME",
    "PUSH_TOKENS_TABLE",
    "HTTP_TIMEOUT_SECONDS",
    "FANOUT_MAX_WORKERS",
    "PRUNE_POLICY",
)


class StubSecretsManager:
    def __init__(self, secret_string):
        self.secret_string = secret_string
        self.requested = []

    def get_secret_value(self, SecretId):
        self.requested.append(SecretId)
        return {"SecretString": self.secret_string}


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AWS_REGION", "us-west-2")


def _fake_boto3(monkeypatch, stub):
    class FakeBoto3:
        def client(self, name, region_name=None):
            assert name == "secretsmanager"
            assert region_name == "us-west-2"
            return stub

    monkeypatch.setattr(settings_module, "boto3", FakeBoto3())


def test_defaults(monkeypatch):
    monkeypatch.setenv("PRIVATE_KEY", "a2V5")

    settings = load_settings()

    assert settings.server_url == "https://voipbits.wooya.me"
    assert settings.private_key == "a2V5"
    assert settings.push_tokens_table == "voipbits-push-tokens"
    assert settings.region == "us-west-2"
    assert settings.http_timeout_seconds == 10.0
    assert settings.fanout_max_workers == 8
    assert settings.prune_policy == "any_failure"


def test_private_key_from_secrets_manager(monkeypatch):
    stub = StubSecretsManager(json.dumps({"private_key": "ZnJvbS1zZWNyZXQ="}))
    _fake_boto3(monkeypatch, stub)
    monkeypatch.setenv("KEY_SECRET_NAME", "voipbits/keys")

    settings = load_settings()

    assert settings.private_key == "ZnJvbS1zZWNyZXQ="
    assert stub.requested == ["voipbits/keys"]


def test_secret_without_private_key_fails(monkeypatch):
    _fake_boto3(monkeypatch, StubSecretsManager(json.dumps({"public_key": "x"})))
    monkeypatch.setenv("KEY_SECRET_NAME", "voipbits/keys")

    with pytest.raises(RuntimeError):
        load_settings()


def test_all_problems_reported_at_once(monkeypatch):
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "soon")
    monkeypatch.setenv("FANOUT_MAX_WORKERS", "0")
    monkeypatch.setenv("PRUNE_POLICY", "never")

    with pytest.raises(RuntimeError) as excinfo:
        load_settings()

    message = str(excinfo.value)
    for name in ("PRIVATE_KEY", "HTTP_TIMEOUT_SECONDS", "FANOUT_MAX_WORKERS", "PRUNE_POLICY"):
        assert name in message


def test_callback_urls():
    settings = Settings(server_url="https://relay.example.com", private_key="k")

    assert settings.report_url() == (
        "https://relay.example.com/report?token=%pushToken%&appid=%pushappid%&selector=%selector%"
    )
    assert settings.fetch_url() == "https://relay.example.com/fetch?last_id=%last_known_sms_id%"
    assert settings.send_url() == "https://relay.example.com/send?to=%sms_to%&body=%sms_body%"
    assert settings.notify_url() == (
        "https://relay.example.com/notify?message={MESSAGE}&from={FROM}&to={TO}"
    )


def test_runtime_is_built_once_and_closed(monkeypatch):
    built = []
    real_build = runtime_module.build_runtime
    settings = Settings(server_url="https://relay.example.com", private_key="k", region="us-west-2")

    def fake_build():
        rt = real_build(settings)
        built.append(rt)
        return rt

    monkeypatch.setattr(runtime_module, "build_runtime", fake_build)
    runtime_module.reset_runtime()

    first = runtime_module.get_runtime()
    second = runtime_module.get_runtime()

    assert first is second
    assert len(built) == 1
    assert isinstance(first.registry, PushTokenRegistry)
    assert first.registry.table_name == "voipbits-push-tokens"

    runtime_module.reset_runtime()
    assert first.http.is_closed
