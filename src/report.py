from voipbits.errors import RelayError
from voipbits.events import (
    error_response,
    get_envelope,
    get_query_param,
    misconfigured_response,
    ok_response,
)
from voipbits.logger import get_logger
from voipbits.push_tokens import PushRegistration
from voipbits.runtime import get_runtime

logger = get_logger("report")


def lambda_handler(event, context):
    logger.info(
        "report.lambda_start",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    try:
        envelope = get_envelope(event)
        push_token = get_query_param(event, "token")
        app_id = get_query_param(event, "appid")
        selector = get_query_param(event, "selector")

        # Acrobits sometimes reports an empty push token; nothing to store.
        if not push_token.strip():
            logger.info("report.empty_token", extra={"app_id": app_id})
            return ok_response()

        runtime = get_runtime()
        credential = runtime.decode(envelope)
        runtime.registry.add_registration(
            credential.line_id,
            PushRegistration(app_id=app_id, push_token=push_token, selector=selector),
        )
    except RelayError as e:
        logger.warning("report.failed", extra={"error": e.code, "detail": str(e)})
        return error_response(e)
    except RuntimeError as e:
        logger.error("report.env_error", extra={"error": str(e)})
        return misconfigured_response()

    logger.info("report.saved", extra={"did": credential.line_id, "app_id": app_id})
    return ok_response()
