from voipbits.events import ok_response
from voipbits.logger import get_logger

logger = get_logger("health")


def lambda_handler(event, context):
    logger.info(
        "health.check",
        extra={"path": "/health", "method": event.get("httpMethod", "GET")},
    )
    return ok_response()
