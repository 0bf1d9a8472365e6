import base64
import binascii
from dataclasses import dataclass
from typing import Any

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import padding

from voipbits.errors import MalformedCredential
from voipbits.logger import get_logger

logger = get_logger("credentials")


@dataclass(frozen=True)
class LineCredential:
    """voip.ms access for one DID, recovered from an envelope for one request."""

    line_id: str
    provider_user: str
    provider_secret: str

    def __repr__(self) -> str:
        return f"LineCredential(line_id={self.line_id!r})"


def load_private_key(private_key_material: str) -> Any:
    """
    Load the relay private key.

    Accepts base64-wrapped PKCS#8 DER (the at-rest format) or a PEM block.
    An unusable key is a deployment problem, so it raises RuntimeError.
    """
    material = private_key_material.strip()
    try:
        if material.startswith("-----BEGIN"):
            return serialization.load_pem_private_key(
                material.encode("utf-8"), password=None, backend=default_backend()
            )
        return serialization.load_der_private_key(
            base64.b64decode(material), password=None, backend=default_backend()
        )
    except (ValueError, TypeError, binascii.Error) as exc:
        logger.error("credentials.invalid_private_key", extra={"error": str(exc)})
        raise RuntimeError(f"Invalid private key: {exc}") from exc


def decode_credential(private_key_material: str, envelope: str) -> LineCredential:
    """
    Decrypt a credential envelope into a LineCredential.

    The envelope is base64 RSA ciphertext (PKCS#1 v1.5) of `did:username:password`.
    URL transport turns `+` into spaces, so spaces are restored before decoding.
    """
    private_key = load_private_key(private_key_material)

    try:
        ciphertext = base64.b64decode(envelope.replace(" ", "+").strip("\r\n\t"), validate=True)
    except (ValueError, binascii.Error) as exc:
        raise MalformedCredential(f"Envelope is not valid base64: {exc}") from exc

    try:
        plaintext = private_key.decrypt(ciphertext, padding.PKCS1v15())
    except ValueError as exc:
        raise MalformedCredential("Envelope could not be decrypted") from exc

    parts = plaintext.decode("utf-8", errors="replace").split(":")
    if len(parts) != 3:
        raise MalformedCredential(
            f"Envelope must hold 3 colon-separated fields, got {len(parts)}"
        )

    did, username, password = parts
    return LineCredential(line_id=did, provider_user=username, provider_secret=password)
