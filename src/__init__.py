"""
VoipBits SMS Relay
==================

Lambda functions relaying SMS between voip.ms and Acrobits-based softphone
clients (Groundwire, Cloud Softphone). Credentials never rest on the server:
clients hold an RSA-encrypted envelope and send it with every request.

Modules under this package:
- send.py       → /send: send an SMS in 160-character chunks
- fetch.py      → /fetch: full or incremental (last_id) SMS fetch
- report.py     → /report: register a device push token
- notify.py     → /notify: voip.ms inbound webhook, push fan-out to devices
- provision.py  → /provision: Acrobits account XML + voip.ms callback setup
- health.py     → /health
- voipbits/     → shared core (credentials, voip.ms client, token registry, ...)

Environment variables expected:
  • SERVER_URL            - Public base URL of this relay
  • PRIVATE_KEY           - Base64 PKCS#8 RSA key for credential envelopes
  • KEY_SECRET_NAME       - Secrets Manager secret with `private_key` (if PRIVATE_KEY unset)
  • PUSH_TOKENS_TABLE     - DynamoDB table of push registrations
  • HTTP_TIMEOUT_SECONDS  - Bound on every outbound call (default: 10)
  • FANOUT_MAX_WORKERS    - Parallel pushes per inbound SMS (default: 8)
  • PRUNE_POLICY          - any_failure | rejected_only (default: any_failure)
  • LOG_LEVEL             - Log verbosity (default: INFO)

All handlers in this package are stateless and Lambda-optimized.
"""

__version__ = "1.0.0"
__author__ = "VoipBits"
__license__ = "MIT"

# Expose top-level package metadata only
__all__ = ["__version__", "__author__"]
