from dataclasses import dataclass
from typing import Optional

import httpx

from voipbits.logger import get_logger

logger = get_logger("acrobits")

ACROBITS_PUSH_URL = "https://pnm.cloudsoftphone.com/pnm2/send"


@dataclass(frozen=True)
class PushResult:
    ok: bool
    status_code: Optional[int] = None
    error: str = ""

    @property
    def rejected(self) -> bool:
        """The gateway answered and refused the token (HTTP 4xx)."""
        return self.status_code is not None and 400 <= self.status_code < 500


class AcrobitsPushSender:
    """Delivers text-message notifications through the Acrobits push manager."""

    def __init__(self, http: httpx.Client, timeout: float = 10.0, url: str = ACROBITS_PUSH_URL):
        self.http = http
        self.timeout = timeout
        self.url = url

    def send(
        self,
        app_id: str,
        device_token: str,
        selector: str,
        sender: str,
        message: str,
    ) -> PushResult:
        body = {
            "verb": "NotifyTextMessage",
            # voip.ms does not hand us the message id on notify, so no "Id".
            "Selector": selector,
            "Badge": "1",
            "UserName": sender,
            "Message": message,
            "AppId": app_id,
            "DeviceToken": device_token,
        }

        try:
            resp = self.http.post(self.url, json=body, timeout=self.timeout)
        except httpx.TimeoutException:
            logger.warning("acrobits.timeout", extra={"app_id": app_id})
            return PushResult(ok=False, error="timeout")
        except httpx.HTTPError as e:
            logger.warning("acrobits.transport_error", extra={"app_id": app_id, "error": str(e)})
            return PushResult(ok=False, error=str(e))

        if not resp.is_success:
            logger.warning(
                "acrobits.rejected",
                extra={"app_id": app_id, "status": resp.status_code, "body": resp.text[:200]},
            )
            return PushResult(ok=False, status_code=resp.status_code, error=resp.text)

        return PushResult(ok=True, status_code=resp.status_code)
