"""Provider-specific category rule tables.

Each provider table maps the provider's own category codes to canonical
categories. Codes are matched exactly first, then by the longest table key
that is a hierarchical prefix of the code (``FOOD_AND_DRINK`` matches
``FOOD_AND_DRINK_COFFEE``, ``PMNT-RCDT`` matches ``PMNT-RCDT-ESCT``).
"""

from __future__ import annotations

from typing import Mapping, Optional

from finsync.domain.banking.value_objects import ProviderKind
from finsync.domain.normalization.normalized_records import Category

# Plaid personal finance categories (primary and a few detailed codes)
PLAID_CATEGORY_RULES: dict[str, Category] = {
    "INCOME": Category.INCOME,
    "TRANSFER_IN": Category.TRANSFER,
    "TRANSFER_OUT": Category.TRANSFER,
    "LOAN_PAYMENTS": Category.LOAN_PAYMENTS,
    "BANK_FEES": Category.FEES,
    "ENTERTAINMENT": Category.ENTERTAINMENT,
    "FOOD_AND_DRINK": Category.MEALS,
    "FOOD_AND_DRINK_GROCERIES": Category.GROCERIES,
    "MEDICAL": Category.HEALTHCARE,
    "TRANSPORTATION": Category.TRAVEL,
    "TRAVEL": Category.TRAVEL,
    "RENT_AND_UTILITIES": Category.UTILITIES,
    "RENT_AND_UTILITIES_RENT": Category.RENT,
    "RENT_AND_UTILITIES_TELEPHONE": Category.INTERNET_AND_PHONE,
    "RENT_AND_UTILITIES_INTERNET_AND_CABLE": Category.INTERNET_AND_PHONE,
    "GENERAL_MERCHANDISE_ELECTRONICS": Category.EQUIPMENT,
    "GENERAL_MERCHANDISE_OFFICE_SUPPLIES": Category.OFFICE_SUPPLIES,
    "GOVERNMENT_AND_NON_PROFIT_TAX_PAYMENT": Category.TAXES,
    "GENERAL_SERVICES_INSURANCE": Category.INSURANCE,
}

# Teller transaction categories
TELLER_CATEGORY_RULES: dict[str, Category] = {
    "accommodation": Category.TRAVEL,
    "bar": Category.MEALS,
    "dining": Category.MEALS,
    "groceries": Category.GROCERIES,
    "electronics": Category.EQUIPMENT,
    "entertainment": Category.ENTERTAINMENT,
    "fuel": Category.TRAVEL,
    "health": Category.HEALTHCARE,
    "income": Category.INCOME,
    "insurance": Category.INSURANCE,
    "loan": Category.LOAN_PAYMENTS,
    "office": Category.OFFICE_SUPPLIES,
    "phone": Category.INTERNET_AND_PHONE,
    "software": Category.SOFTWARE,
    "tax": Category.TAXES,
    "transport": Category.TRAVEL,
    "transportation": Category.TRAVEL,
    "utilities": Category.UTILITIES,
}

# ISO 20022 bank transaction codes (domain-family-subfamily), sent by both
# GoCardless and Enable Banking
ISO20022_CATEGORY_RULES: dict[str, Category] = {
    "PMNT-RCDT-SALA": Category.INCOME,
    "PMNT-ICDT": Category.TRANSFER,
    "PMNT-RCDT-BOOK": Category.TRANSFER,
    "ACMT-MDOP-CHRG": Category.FEES,
    "ACMT-MDOP-FEES": Category.FEES,
    "ACMT-MDOP-INTR": Category.INCOME,
    "LDAS-CSLN": Category.LOAN_PAYMENTS,
    "LDAS-MGLN": Category.LOAN_PAYMENTS,
}

PROVIDER_CATEGORY_RULES: dict[ProviderKind, Mapping[str, Category]] = {
    ProviderKind.PLAID: PLAID_CATEGORY_RULES,
    ProviderKind.TELLER: TELLER_CATEGORY_RULES,
    ProviderKind.GOCARDLESS: ISO20022_CATEGORY_RULES,
    ProviderKind.ENABLEBANKING: ISO20022_CATEGORY_RULES,
}

_SEPARATORS = ("_", "-", ".")


def lookup_provider_category(
    provider: ProviderKind,
    code: Optional[str],
) -> Optional[Category]:
    """Map a provider category code to a canonical category, if a rule exists."""
    if not code:
        return None

    table = PROVIDER_CATEGORY_RULES.get(provider, {})
    normalized = code.strip()
    if provider is ProviderKind.TELLER:
        normalized = normalized.lower()
    else:
        normalized = normalized.upper()

    if normalized in table:
        return table[normalized]

    for key in sorted(table, key=len, reverse=True):
        if (
            normalized.startswith(key)
            and len(normalized) > len(key)
            and normalized[len(key)] in _SEPARATORS
        ):
            return table[key]
    return None
