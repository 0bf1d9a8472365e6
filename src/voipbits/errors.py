"""
Error taxonomy for the relay.

Every error a handler can report derives from RelayError, which carries the
HTTP status the handler answers with and a stable machine-readable code.
Bad input maps to 400, upstream failures to 502.
"""

from typing import List, Optional


class RelayError(Exception):
    status_code = 400
    code = "relay_error"


class MalformedCredential(RelayError):
    code = "malformed_credential"


class MissingAccountInfo(RelayError):
    code = "missing_account_info"

    def __init__(self):
        super().__init__("Missing account information")


class MissingParameter(RelayError):
    code = "missing_parameter"

    def __init__(self, name: str):
        super().__init__(f"Missing parameter: {name}")
        self.name = name


class InvalidParameter(RelayError):
    code = "invalid_parameter"


class InvalidNumber(RelayError):
    code = "invalid_number"

    def __init__(self, number: str):
        super().__init__(f"Invalid number: {number}")
        self.number = number


class EmptyMessage(RelayError):
    code = "empty_message"

    def __init__(self):
        super().__init__("Empty message")


class NoSuchSMS(RelayError):
    code = "no_such_sms"

    def __init__(self, sms_id: str):
        super().__init__(f"No such SMS with id {sms_id}")
        self.sms_id = sms_id


class NoPushTokenAvailable(RelayError):
    code = "no_push_token_available"

    def __init__(self, line_id: str):
        super().__init__(f"No push token available for {line_id}")
        self.line_id = line_id


class ProviderError(RelayError):
    """voip.ms answered with an HTTP error, an unusable payload, or not at all."""

    status_code = 502
    code = "provider_error"

    def __init__(
        self,
        message: str,
        http_status: Optional[int] = None,
        body: str = "",
        sent_ids: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.http_status = http_status
        self.body = body
        # Ids of chunks already delivered before a send aborted.
        self.sent_ids = list(sent_ids or [])


class StorageError(RelayError):
    status_code = 502
    code = "storage_error"


class StorageCorruption(RelayError):
    status_code = 500
    code = "storage_corruption"
