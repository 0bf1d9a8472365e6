import base64
import binascii
import json
from typing import Any, Dict, Optional

from voipbits.errors import MissingAccountInfo, MissingParameter, RelayError


def get_envelope(event: dict) -> str:
    """
    The credential envelope is the raw request body (text/plain).

    API Gateway may hand it over base64-encoded; that layer is undone here,
    the envelope's own base64 is left for the credential codec.
    """
    body = event.get("body")
    if body and event.get("isBase64Encoded"):
        try:
            body = base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            raise MissingAccountInfo()
    if not body or not body.strip():
        raise MissingAccountInfo()
    return body


def get_query_param(event: dict, name: str) -> str:
    value = get_optional_param(event, name)
    if value is None:
        raise MissingParameter(name)
    return value


def get_optional_param(event: dict, name: str) -> Optional[str]:
    params = event.get("queryStringParameters") or {}
    return params.get(name)


def json_response(payload: Any, status_code: int = 200) -> Dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def ok_response() -> Dict[str, Any]:
    return json_response({"status": "ok"})


def error_response(error: RelayError) -> Dict[str, Any]:
    return json_response(
        {"error": error.code, "message": str(error)},
        status_code=error.status_code,
    )


def misconfigured_response() -> Dict[str, Any]:
    # Misconfiguration is a 500, not a 4xx
    return json_response({"error": "server_misconfigured"}, status_code=500)
