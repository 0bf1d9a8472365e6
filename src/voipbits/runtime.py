"""
Per-container wiring.

Lambda reuses a container across invocations, so the HTTP and DynamoDB
clients are built once by `get_runtime()` and handed to the core classes.
`reset_runtime()` closes them (tests, or a config reload).
"""

from dataclasses import dataclass
from typing import Optional

import boto3
import httpx
from botocore.config import Config

from voipbits.acrobits import AcrobitsPushSender
from voipbits.credentials import LineCredential, decode_credential
from voipbits.fanout import NotificationFanout
from voipbits.logger import get_logger
from voipbits.push_tokens import PushTokenRegistry
from voipbits.settings import Settings, load_settings
from voipbits.voipms import VoipMsClient

logger = get_logger("runtime")


@dataclass
class Runtime:
    settings: Settings
    http: httpx.Client
    registry: PushTokenRegistry
    push_sender: AcrobitsPushSender

    def decode(self, envelope: str) -> LineCredential:
        return decode_credential(self.settings.private_key, envelope)

    def gateway(self, credential: LineCredential) -> VoipMsClient:
        return VoipMsClient(credential, self.http, timeout=self.settings.http_timeout_seconds)

    def fanout(self) -> NotificationFanout:
        return NotificationFanout(
            self.registry,
            self.push_sender,
            max_workers=self.settings.fanout_max_workers,
            prune_policy=self.settings.prune_policy,
        )

    def close(self) -> None:
        self.http.close()


def build_runtime(settings: Optional[Settings] = None) -> Runtime:
    settings = settings or load_settings()

    http = httpx.Client(timeout=settings.http_timeout_seconds)
    dynamodb = boto3.client(
        "dynamodb",
        region_name=settings.region,
        config=Config(
            connect_timeout=settings.http_timeout_seconds,
            read_timeout=settings.http_timeout_seconds,
            retries={"max_attempts": 1, "mode": "standard"},
        ),
    )

    logger.info(
        "runtime.initialized",
        extra={"table": settings.push_tokens_table, "prune_policy": settings.prune_policy},
    )
    return Runtime(
        settings=settings,
        http=http,
        registry=PushTokenRegistry(dynamodb, settings.push_tokens_table),
        push_sender=AcrobitsPushSender(http, timeout=settings.http_timeout_seconds),
    )


_runtime: Optional[Runtime] = None


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        _runtime = build_runtime()
    return _runtime


def reset_runtime() -> None:
    global _runtime
    if _runtime is not None:
        _runtime.close()
    _runtime = None
