from dataclasses import dataclass
from typing import Iterable, Set

from botocore.exceptions import BotoCoreError, ClientError

from voipbits.errors import (
    InvalidParameter,
    NoPushTokenAvailable,
    StorageCorruption,
    StorageError,
)
from voipbits.logger import get_logger

logger = get_logger("push_tokens")

SEPARATOR = "\\"
TOKENS_ATTR = "tokens"


@dataclass(frozen=True)
class PushRegistration:
    app_id: str
    push_token: str
    selector: str

    def validate(self) -> None:
        for name in ("app_id", "push_token", "selector"):
            if SEPARATOR in getattr(self, name):
                raise InvalidParameter(f"{name} must not contain a backslash")

    def encode(self) -> str:
        return SEPARATOR.join((self.app_id, self.push_token, self.selector))

    @classmethod
    def decode(cls, record: str) -> "PushRegistration":
        parts = record.split(SEPARATOR)
        if len(parts) != 3:
            raise StorageCorruption(
                f"Push token record has {len(parts)} fields, expected 3"
            )
        return cls(*parts)


class PushTokenRegistry:
    """
    Push registrations per DID, stored as a DynamoDB string set.

    Item shape: {"did": {"S": <line id>}, "tokens": {"SS": [<encoded>, ...]}}.
    Adds and removes are single UpdateItem calls (ADD / DELETE on the set),
    so concurrent writers converge without locking.
    """

    def __init__(self, dynamodb, table_name: str):
        self.dynamodb = dynamodb
        self.table_name = table_name

    def _update(self, line_id: str, action: str, records: Iterable[str]) -> None:
        try:
            self.dynamodb.update_item(
                TableName=self.table_name,
                Key={"did": {"S": line_id}},
                UpdateExpression=f"{action} {TOKENS_ATTR} :tokens",
                ExpressionAttributeValues={":tokens": {"SS": sorted(records)}},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(
                "push_tokens.update_failed",
                extra={"did": line_id, "action": action, "error": str(e)},
            )
            raise StorageError(f"Push token {action.lower()} failed for {line_id}") from e

    def add_registration(self, line_id: str, registration: PushRegistration) -> None:
        registration.validate()
        self._update(line_id, "ADD", [registration.encode()])
        logger.info("push_tokens.added", extra={"did": line_id, "app_id": registration.app_id})

    def list_registrations(self, line_id: str) -> Set[PushRegistration]:
        try:
            resp = self.dynamodb.get_item(
                TableName=self.table_name,
                Key={"did": {"S": line_id}},
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("push_tokens.get_failed", extra={"did": line_id, "error": str(e)})
            raise StorageError(f"Push token lookup failed for {line_id}") from e

        item = resp.get("Item")
        if not item:
            raise NoPushTokenAvailable(line_id)

        records = (item.get(TOKENS_ATTR) or {}).get("SS")
        if not records:
            raise NoPushTokenAvailable(line_id)

        return {PushRegistration.decode(record) for record in records}

    def remove_registrations(self, line_id: str, registrations: Iterable[PushRegistration]) -> None:
        records = {registration.encode() for registration in registrations}
        # DynamoDB rejects empty sets in update expressions.
        if not records:
            return

        self._update(line_id, "DELETE", records)
        logger.info("push_tokens.removed", extra={"did": line_id, "count": len(records)})
