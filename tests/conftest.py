import base64
from datetime import datetime, timezone

import httpx
import pytest
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from voipbits.acrobits import PushResult
from voipbits.credentials import LineCredential
from voipbits.push_tokens import PushTokenRegistry
from voipbits.runtime import Runtime
from voipbits.settings import Settings

# 2024-07-01 is in PDT, so voip.ms gets timezone=-1 unless a test says otherwise.
FIXED_NOW = datetime(2024, 7, 1, 12, 0, tzinfo=timezone.utc)


class FakeDynamoDB:
    """In-memory stand-in for the low-level DynamoDB client (string-set ADD/DELETE)."""

    def __init__(self):
        self.items = {}
        self.calls = []

    def update_item(self, TableName, Key, UpdateExpression, ExpressionAttributeValues):
        self.calls.append(("update_item", UpdateExpression, ExpressionAttributeValues))
        did = Key["did"]["S"]
        values = set(ExpressionAttributeValues[":tokens"]["SS"])
        assert values, "DynamoDB rejects empty string sets"

        item = self.items.setdefault(did, {"did": {"S": did}})
        current = set(item.get("tokens", {}).get("SS", []))
        if UpdateExpression.startswith("ADD"):
            current |= values
        else:
            current -= values

        if current:
            item["tokens"] = {"SS": sorted(current)}
        else:
            item.pop("tokens", None)
        return {}

    def get_item(self, TableName, Key):
        self.calls.append(("get_item", Key))
        item = self.items.get(Key["did"]["S"])
        return {"Item": item} if item else {}


class StubPushSender:
    def __init__(self, failing_tokens=(), status_code=410):
        self.failing_tokens = set(failing_tokens)
        self.status_code = status_code
        self.sent = []

    def send(self, app_id, device_token, selector, sender, message):
        self.sent.append(
            {
                "app_id": app_id,
                "token": device_token,
                "selector": selector,
                "from": sender,
                "message": message,
            }
        )
        if device_token in self.failing_tokens:
            return PushResult(ok=False, status_code=self.status_code, error="gone")
        return PushResult(ok=True, status_code=200)


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048, backend=default_backend())


@pytest.fixture(scope="session")
def private_key_b64(rsa_key):
    der = rsa_key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return base64.b64encode(der).decode("ascii")


@pytest.fixture(scope="session")
def make_envelope(rsa_key):
    def _make(plaintext: str) -> str:
        ciphertext = rsa_key.public_key().encrypt(plaintext.encode("utf-8"), padding.PKCS1v15())
        return base64.b64encode(ciphertext).decode("ascii")

    return _make


@pytest.fixture
def credential():
    return LineCredential(line_id="5551234567", provider_user="alice@example.com", provider_secret="s3cret")


@pytest.fixture
def fake_dynamodb():
    return FakeDynamoDB()


@pytest.fixture
def registry(fake_dynamodb):
    return PushTokenRegistry(fake_dynamodb, "voipbits-push-tokens")


@pytest.fixture
def http_client():
    client = httpx.Client()
    yield client
    client.close()


@pytest.fixture
def runtime(private_key_b64, registry, http_client):
    settings = Settings(server_url="https://relay.example.com", private_key=private_key_b64)
    return Runtime(
        settings=settings,
        http=http_client,
        registry=registry,
        push_sender=StubPushSender(),
    )


@pytest.fixture(scope="session")
def leading_plus_envelope():
    """
    A key and a `did:user:password` envelope whose base64 starts with `+`.

    The first base64 character is `+` when the ciphertext's top byte is
    0xF8-0xFB, which needs a modulus whose top byte is at least 0xFC.
    """
    while True:
        key = rsa.generate_private_key(public_exponent=65537, key_size=1024, backend=default_backend())
        if key.public_key().public_numbers().n >> 1016 >= 0xFC:
            break

    while True:
        ciphertext = key.public_key().encrypt(b"5551234567:alice:secret", padding.PKCS1v15())
        envelope = base64.b64encode(ciphertext).decode("ascii")
        if envelope.startswith("+"):
            break

    der = key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    return base64.b64encode(der).decode("ascii"), envelope
