# voipbits/voipms.py

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx

from voipbits.credentials import LineCredential
from voipbits.errors import EmptyMessage, InvalidNumber, NoSuchSMS, ProviderError
from voipbits.logger import get_logger

logger = get_logger("voipms")

VOIPMS_URL = "https://voip.ms/api/v1/rest.php"

# voip.ms rejects longer messages; measured in characters, not bytes.
CHUNK_SIZE = 160

FETCH_WINDOW_DAYS = 90
FETCH_LIMIT = "9999"

PROVIDER_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
RANGE_DATE_FORMAT = "%Y-%m-%d"

# Statuses that carry a usable payload; anything else is an API-level error.
_OK_STATUSES = ("success", "no_sms")

_PACIFIC = ZoneInfo("America/Los_Angeles")
_NON_DIGITS = re.compile(r"\D")


class Direction(Enum):
    SENT = "0"
    RECEIVED = "1"


@dataclass(frozen=True)
class SmsRecord:
    sms_id: str
    timestamp: datetime
    direction: Direction
    counterparty: str
    text: str

    @classmethod
    def from_provider(cls, raw: Dict) -> "SmsRecord":
        """Normalize one entry of a getSMS `sms` list."""
        try:
            type_code = str(raw["type"])
            sms_id = str(raw["id"])
            timestamp = parse_provider_date(raw["date"])
            counterparty = raw["contact"]
            text = raw["message"]
        except (KeyError, TypeError) as e:
            raise ProviderError(f"Malformed SMS record: missing {e}", body=str(raw)) from e

        try:
            direction = Direction(type_code)
        except ValueError as e:
            raise ProviderError(
                f"Unknown SMS type code {type_code!r} for SMS {sms_id}", body=str(raw)
            ) from e

        return cls(
            sms_id=sms_id,
            timestamp=timestamp,
            direction=direction,
            counterparty=counterparty,
            text=text,
        )

    def to_acrobits(self) -> Dict[str, str]:
        """Shape expected by the Acrobits generic SMS fetch API."""
        payload = {
            "sms_id": self.sms_id,
            "sending_date": self.timestamp.isoformat().replace("+00:00", "Z"),
            "sms_text": self.text,
        }
        if self.direction is Direction.SENT:
            payload["recipient"] = self.counterparty
        else:
            payload["sender"] = self.counterparty
        return payload


def parse_provider_date(value: str) -> datetime:
    try:
        return datetime.strptime(value, PROVIDER_DATE_FORMAT).replace(tzinfo=timezone.utc)
    except (TypeError, ValueError) as e:
        raise ProviderError(f"Malformed SMS date {value!r}", body=str(value)) from e


def normalize_number(destination: str) -> str:
    """
    Reduce a destination to the 10-digit NANP form voip.ms expects.

    Non-digits are dropped, then a leading country code `1` on an 11-digit
    number. Anything that is not 10 digits afterwards is rejected.
    """
    digits = _NON_DIGITS.sub("", destination)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        raise InvalidNumber(digits)
    return digits


def split_message(text: str, size: int = CHUNK_SIZE) -> List[str]:
    return [text[i:i + size] for i in range(0, len(text), size)]


def is_pacific_dst(now: Optional[datetime] = None) -> bool:
    """True when US Pacific time is exactly 7 hours behind UTC at `now`."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(_PACIFIC).utcoffset() == timedelta(hours=-7)


def timezone_flag(now: Optional[datetime] = None) -> str:
    # voip.ms takes an hour adjustment, not a zone name.
    return "-1" if is_pacific_dst(now) else "0"


class VoipMsClient:
    """
    voip.ms REST client bound to one line credential.

    The httpx client is shared across requests and owned by the caller.
    """

    def __init__(
        self,
        credential: LineCredential,
        http: httpx.Client,
        timeout: float = 10.0,
        base_url: str = VOIPMS_URL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.credential = credential
        self.http = http
        self.timeout = timeout
        self.base_url = base_url
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def did(self) -> str:
        return self.credential.line_id

    def request(self, method: str, **params: str) -> Dict:
        query = {
            "api_username": self.credential.provider_user,
            "api_password": self.credential.provider_secret,
            "did": self.credential.line_id,
            "method": method,
        }
        query.update(params)

        try:
            resp = self.http.get(self.base_url, params=query, timeout=self.timeout)
        except httpx.TimeoutException as e:
            logger.error("voipms.timeout", extra={"method": method, "did": self.did})
            raise ProviderError(f"voip.ms {method} timed out") from e
        except httpx.HTTPError as e:
            logger.error(
                "voipms.transport_error",
                extra={"method": method, "did": self.did, "error": str(e)},
            )
            raise ProviderError(f"voip.ms {method} failed: {e}") from e

        body = resp.text
        if not resp.is_success:
            logger.error(
                "voipms.http_error",
                extra={"method": method, "status": resp.status_code, "body": body[:500]},
            )
            raise ProviderError(
                f"voip.ms {method} returned HTTP {resp.status_code}",
                http_status=resp.status_code,
                body=body,
            )

        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError(
                f"voip.ms {method} returned non-JSON body",
                http_status=resp.status_code,
                body=body,
            ) from e

        if not isinstance(payload, dict):
            raise ProviderError(
                f"voip.ms {method} returned unexpected payload",
                http_status=resp.status_code,
                body=body,
            )

        api_status = payload.get("status")
        logger.info(
            "voipms.response",
            extra={"method": method, "status": resp.status_code, "api_status": api_status},
        )
        if api_status not in _OK_STATUSES:
            raise ProviderError(
                f"voip.ms {method} failed with status {api_status!r}",
                http_status=resp.status_code,
                body=body,
            )

        return payload

    def send_sms(self, destination: str, text: str) -> List[str]:
        """
        Send `text` to `destination` in 160-character chunks, in order.

        Returns the provider id of every chunk. A failing chunk aborts the
        rest; chunks already sent stay sent and are listed on the error.
        """
        dst = normalize_number(destination)
        message = text.strip()
        if not message:
            raise EmptyMessage()

        ids: List[str] = []
        chunks = split_message(message)
        for index, chunk in enumerate(chunks):
            logger.info(
                "voipms.send_chunk",
                extra={"did": self.did, "chunk": index + 1, "chunks": len(chunks)},
            )
            try:
                payload = self.request("sendSMS", dst=dst, message=chunk)
                ids.append(str(payload["sms"]))
            except KeyError as e:
                raise ProviderError(
                    "voip.ms sendSMS response has no sms id",
                    body=str(payload),
                    sent_ids=ids,
                ) from e
            except ProviderError as e:
                logger.error(
                    "voipms.send_aborted",
                    extra={"did": self.did, "chunk": index + 1, "sent": len(ids)},
                )
                e.sent_ids = list(ids)
                raise

        return ids

    def fetch_sms_after_id(self, last_id: str) -> List[SmsRecord]:
        """
        Inbound messages newer than `last_id`.

        The caller already holds everything it sent and everything up to the
        marker, so only received records with an id lexically greater than
        `last_id` are returned.
        """
        payload = self.request(
            "getSMS",
            sms=last_id,
            limit="1",
            timezone=timezone_flag(self.clock()),
        )

        matches = payload.get("sms")
        if matches is None:
            return []
        if not isinstance(matches, list):
            raise ProviderError("voip.ms getSMS returned a non-list sms field", body=str(payload))
        if not matches:
            raise NoSuchSMS(last_id)
        if len(matches) > 1:
            raise ProviderError(f"Multiple SMS with id {last_id}", body=str(payload))

        marker = SmsRecord.from_provider(matches[0])
        logger.info(
            "voipms.marker_found",
            extra={"sms_id": last_id, "date": marker.timestamp.isoformat()},
        )

        records = self.fetch_sms_from_date(marker.timestamp)
        return [
            sms
            for sms in records
            if sms.direction is not Direction.SENT and sms.sms_id > last_id
        ]

    def fetch_sms_from_date(self, start: Optional[datetime] = None) -> List[SmsRecord]:
        """All messages from `start` (default: 90 days ago) through tomorrow."""
        now = self.clock()
        date_from = (start or now - timedelta(days=FETCH_WINDOW_DAYS)).strftime(RANGE_DATE_FORMAT)
        date_to = (now + timedelta(days=1)).strftime(RANGE_DATE_FORMAT)

        logger.info(
            "voipms.fetch_range",
            extra={"did": self.did, "from": date_from, "to": date_to},
        )

        payload = self.request(
            "getSMS",
            **{
                "from": date_from,
                "to": date_to,
                "limit": FETCH_LIMIT,
                "timezone": timezone_flag(now),
            },
        )

        raw = payload.get("sms")
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise ProviderError("voip.ms getSMS returned a non-list sms field", body=str(payload))
        return [SmsRecord.from_provider(item) for item in raw]

    def set_sms_callback(self, notify_url: str) -> None:
        """Point voip.ms inbound SMS webhooks at `notify_url`."""
        self.request(
            "setSMS",
            enable="1",
            url_callback_enable="1",
            url_callback=notify_url,
            url_callback_retry="1",
        )
        logger.info("voipms.callback_set", extra={"did": self.did})
