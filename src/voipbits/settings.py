import json
import os
from dataclasses import dataclass
from typing import Optional

import boto3

from voipbits.logger import get_logger

logger = get_logger("settings")

DEFAULT_SERVER_URL = "https://voipbits.wooya.me"
DEFAULT_PUSH_TOKENS_TABLE = "voipbits-push-tokens"

PRUNE_ANY_FAILURE = "any_failure"
PRUNE_REJECTED_ONLY = "rejected_only"
PRUNE_POLICIES = (PRUNE_ANY_FAILURE, PRUNE_REJECTED_ONLY)


@dataclass(frozen=True)
class Settings:
    server_url: str
    private_key: str
    push_tokens_table: str = DEFAULT_PUSH_TOKENS_TABLE
    region: str = "us-east-1"
    http_timeout_seconds: float = 10.0
    fanout_max_workers: int = 8
    prune_policy: str = PRUNE_ANY_FAILURE

    def report_url(self) -> str:
        return f"{self.server_url}/report?token=%pushToken%&appid=%pushappid%&selector=%selector%"

    def fetch_url(self) -> str:
        return f"{self.server_url}/fetch?last_id=%last_known_sms_id%"

    def send_url(self) -> str:
        return f"{self.server_url}/send?to=%sms_to%&body=%sms_body%"

    def notify_url(self) -> str:
        return f"{self.server_url}/notify?message={{MESSAGE}}&from={{FROM}}&to={{TO}}"


def get_key_secrets(secret_name: str, region_name: str) -> dict:
    """
    Fetch the relay key pair from AWS Secrets Manager.

    Expects the secret value to be a JSON object, e.g.:

        {
          "private_key": "MIIEvQIBADANBgkqhkiG9w0BAQEFAASC...",
          "public_key": "..."
        }
    """
    logger.info(
        "Fetching relay key from Secrets Manager",
        extra={"secret_name": secret_name, "region": region_name},
    )

    client = boto3.client("secretsmanager", region_name=region_name)

    resp = client.get_secret_value(SecretId=secret_name)
    secret_str = resp.get("SecretString")

    if not secret_str:
        msg = f"Secret '{secret_name}' has no SecretString payload"
        logger.error(msg)
        raise RuntimeError(msg)

    try:
        data = json.loads(secret_str)
    except json.JSONDecodeError as e:
        logger.error(
            "SecretString is not valid JSON",
            extra={"secret_name": secret_name, "error": str(e)},
        )
        raise RuntimeError(f"Secret '{secret_name}' is not valid JSON") from e

    if not isinstance(data, dict) or not data.get("private_key"):
        msg = f"Secret '{secret_name}' has no private_key field"
        logger.error(msg)
        raise RuntimeError(msg)

    return data


def _positive(name: str, raw: str, cast, problems: list) -> Optional[float]:
    try:
        value = cast(raw)
    except ValueError:
        problems.append(f"{name}='{raw}' is not a valid number")
        return None
    if value <= 0:
        problems.append(f"{name}='{raw}' must be positive")
        return None
    return value


def load_settings() -> Settings:
    """
    Load the relay configuration from environment variables.

    SERVER_URL:            public base URL used in provider and client callbacks
    PRIVATE_KEY:           base64 PKCS#8 private key for credential envelopes
    KEY_SECRET_NAME:       Secrets Manager secret holding `private_key`,
                           consulted only when PRIVATE_KEY is unset
    PUSH_TOKENS_TABLE:     DynamoDB table of push registrations
    HTTP_TIMEOUT_SECONDS:  bound on every outbound call
    FANOUT_MAX_WORKERS:    parallel push attempts per notification
    PRUNE_POLICY:          any_failure | rejected_only

    Raises RuntimeError listing every missing/invalid variable.
    """
    region = os.getenv("AWS_REGION", "us-east-1")
    server_url = os.getenv("SERVER_URL", DEFAULT_SERVER_URL).rstrip("/")
    private_key = os.getenv("PRIVATE_KEY")
    key_secret_name = os.getenv("KEY_SECRET_NAME")
    table = os.getenv("PUSH_TOKENS_TABLE", DEFAULT_PUSH_TOKENS_TABLE)
    prune_policy = os.getenv("PRUNE_POLICY", PRUNE_ANY_FAILURE)

    problems = []
    if not private_key and not key_secret_name:
        problems.append("PRIVATE_KEY or KEY_SECRET_NAME must be set")
    if prune_policy not in PRUNE_POLICIES:
        problems.append(
            f"PRUNE_POLICY='{prune_policy}' must be one of {', '.join(PRUNE_POLICIES)}"
        )

    timeout = _positive(
        "HTTP_TIMEOUT_SECONDS", os.getenv("HTTP_TIMEOUT_SECONDS", "10"), float, problems
    )
    workers = _positive(
        "FANOUT_MAX_WORKERS", os.getenv("FANOUT_MAX_WORKERS", "8"), int, problems
    )

    if problems:
        msg = f"Invalid configuration: {'; '.join(problems)}"
        logger.error(msg)
        raise RuntimeError(msg)

    if not private_key:
        private_key = get_key_secrets(key_secret_name, region)["private_key"]

    return Settings(
        server_url=server_url,
        private_key=private_key,
        push_tokens_table=table,
        region=region,
        http_timeout_seconds=timeout,
        fanout_max_workers=workers,
        prune_policy=prune_policy,
    )
