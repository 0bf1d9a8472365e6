from voipbits.errors import RelayError
from voipbits.events import error_response, get_query_param, misconfigured_response, ok_response
from voipbits.logger import get_logger
from voipbits.runtime import get_runtime

logger = get_logger("notify")


def lambda_handler(event, context):
    """voip.ms inbound SMS webhook: push the message to every device of the DID."""
    logger.info(
        "notify.lambda_start",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    try:
        message = get_query_param(event, "message")
        did = get_query_param(event, "to")
        sender = get_query_param(event, "from")

        logger.info("notify.inbound", extra={"did": did, "from": sender})

        result = get_runtime().fanout().deliver(did, sender, message)
    except RelayError as e:
        logger.warning("notify.failed", extra={"error": e.code, "detail": str(e)})
        return error_response(e)
    except RuntimeError as e:
        logger.error("notify.env_error", extra={"error": str(e)})
        return misconfigured_response()

    logger.info(
        "notify.done",
        extra={"did": did, "delivered": len(result.delivered), "pruned": len(result.pruned)},
    )
    return ok_response()
