"""
VoipBits relay core
===================

Shared modules behind the Lambda handlers:

- logger.py       → structured JSON logging
- settings.py     → environment / Secrets Manager configuration
- errors.py       → error taxonomy mapped to HTTP status codes
- credentials.py  → RSA credential envelope decoding
- voipms.py       → voip.ms REST client (send, fetch, callback setup)
- push_tokens.py  → DynamoDB registry of device push registrations
- acrobits.py     → Acrobits push notification sender
- fanout.py       → inbound SMS fan-out with token pruning
- runtime.py      → per-container client wiring
- events.py       → API Gateway event parsing and responses
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
