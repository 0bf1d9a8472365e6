from datetime import datetime, timezone

from voipbits.errors import RelayError
from voipbits.events import (
    error_response,
    get_envelope,
    get_optional_param,
    json_response,
    misconfigured_response,
)
from voipbits.logger import get_logger
from voipbits.runtime import get_runtime
from voipbits.voipms import Direction

logger = get_logger("fetch")


def lambda_handler(event, context):
    logger.info(
        "fetch.lambda_start",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    try:
        runtime = get_runtime()

        envelope = get_envelope(event)
        last_id = get_optional_param(event, "last_id")

        gateway = runtime.gateway(runtime.decode(envelope))
        if last_id:
            records = gateway.fetch_sms_after_id(last_id)
        else:
            records = gateway.fetch_sms_from_date()
    except RelayError as e:
        logger.warning("fetch.failed", extra={"error": e.code, "detail": str(e)})
        return error_response(e)
    except RuntimeError as e:
        logger.error("fetch.env_error", extra={"error": str(e)})
        return misconfigured_response()

    logger.info("fetch.done", extra={"count": len(records), "incremental": bool(last_id)})

    return json_response(
        {
            "date": datetime.now(timezone.utc).isoformat(),
            "received_smss": [
                sms.to_acrobits() for sms in records if sms.direction is Direction.RECEIVED
            ],
            "sent_smss": [
                sms.to_acrobits() for sms in records if sms.direction is Direction.SENT
            ],
        }
    )
