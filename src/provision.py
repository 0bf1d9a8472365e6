from xml.sax.saxutils import escape

from voipbits.errors import RelayError
from voipbits.events import error_response, get_envelope, misconfigured_response
from voipbits.logger import get_logger
from voipbits.runtime import get_runtime
from voipbits.settings import Settings

logger = get_logger("provision")

ACCOUNT_TEMPLATE = """<account>
    <pushTokenReporterUrl>{report_url}</pushTokenReporterUrl>
    <pushTokenReporterPostData>{cred}</pushTokenReporterPostData>
    <pushTokenReporterContentType>text/plain</pushTokenReporterContentType>

    <genericSmsFetchUrl>{fetch_url}</genericSmsFetchUrl>
    <genericSmsFetchPostData>{cred}</genericSmsFetchPostData>
    <genericSmsFetchContentType>text/plain</genericSmsFetchContentType>

    <genericSmsSendUrl>{send_url}</genericSmsSendUrl>
    <genericSmsPostData>{cred}</genericSmsPostData>
    <genericSmsContentType>text/plain</genericSmsContentType>

    <voipmsNotificationUrl>{notify_url}</voipmsNotificationUrl>
    <allowMessage>1</allowMessage>
    <voiceMailNumber>*97</voiceMailNumber>
</account>"""


def build_account_xml(settings: Settings, envelope: str) -> str:
    """Acrobits account descriptor pointing the client at this relay."""
    return ACCOUNT_TEMPLATE.format(
        report_url=escape(settings.report_url()),
        fetch_url=escape(settings.fetch_url()),
        send_url=escape(settings.send_url()),
        notify_url=escape(settings.notify_url()),
        cred=escape(envelope),
    )


def lambda_handler(event, context):
    logger.info(
        "provision.lambda_start",
        extra={"request_id": getattr(context, "aws_request_id", None)},
    )

    try:
        runtime = get_runtime()
        envelope = get_envelope(event)

        credential = runtime.decode(envelope)
        runtime.gateway(credential).set_sms_callback(runtime.settings.notify_url())
    except RelayError as e:
        logger.warning("provision.failed", extra={"error": e.code, "detail": str(e)})
        return error_response(e)
    except RuntimeError as e:
        logger.error("provision.env_error", extra={"error": str(e)})
        return misconfigured_response()

    logger.info("provision.done", extra={"did": credential.line_id})
    return {
        "statusCode": 200,
        "headers": {"Content-Type": "application/xml"},
        "body": build_account_xml(runtime.settings, envelope),
    }
