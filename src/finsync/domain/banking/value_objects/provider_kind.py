"""Provider kind enumeration."""

from enum import Enum


class ProviderKind(str, Enum):
    """External banking providers a connection can be linked through."""

    PLAID = "plaid"
    TELLER = "teller"
    GOCARDLESS = "gocardless"
    ENABLEBANKING = "enablebanking"
