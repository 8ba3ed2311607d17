"""Provider webhook verifiers."""

from finsync.infrastructure.webhooks.plaid_verifier import PlaidWebhookVerifier
from finsync.infrastructure.webhooks.teller_verifier import TellerWebhookVerifier

__all__ = [
    "PlaidWebhookVerifier",
    "TellerWebhookVerifier",
]
