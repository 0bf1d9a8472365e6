from voipbits.errors import RelayError
from voipbits.events import (
    error_response,
    get_envelope,
    get_query_param,
    json_response,
    misconfigured_response,
)
from voipbits.logger import get_logger
from voipbits.runtime import get_runtime

logger = get_logger("send")


def lambda_handler(event, context):
    logger.info(
        "send.lambda_start",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    try:
        runtime = get_runtime()

        envelope = get_envelope(event)
        to = get_query_param(event, "to")
        body = get_query_param(event, "body")

        credential = runtime.decode(envelope)
        logger.info("send.sending", extra={"did": credential.line_id, "to": to})

        ids = runtime.gateway(credential).send_sms(to, body)
    except RelayError as e:
        logger.warning("send.failed", extra={"error": e.code, "detail": str(e)})
        return error_response(e)
    except RuntimeError as e:
        logger.error("send.env_error", extra={"error": str(e)})
        return misconfigured_response()

    logger.info("send.sent", extra={"sms_id": ids[0], "chunks": len(ids)})
    # Clients track one id per logical message: the first chunk's.
    return json_response({"sms_id": ids[0]})
