from __future__ import annotations

from typing import Dict, Mapping, Optional

from app.core.config import get_settings
from app.core.errors import ValidationError


class CurrencyPolicy:
    """
    Resolves the settlement currency of a property from its country.

    Lookup is case-insensitive on the country name or ISO-2 code.
    Unmapped countries are an error; there is no silent default.
    """

    def __init__(self, mapping: Mapping[str, str]):
        self._mapping: Dict[str, str] = {
            k.strip().lower(): v.upper() for k, v in mapping.items()
        }

    @classmethod
    def from_settings(cls) -> "CurrencyPolicy":
        return cls(get_settings().currency_by_country)

    def lookup(self, country: Optional[str]) -> Optional[str]:
        if not country or not country.strip():
            return None
        return self._mapping.get(country.strip().lower())

    def currency_for(self, country: Optional[str]) -> str:
        if not country or not country.strip():
            raise ValidationError("Property has no country; cannot determine currency.")
        currency = self.lookup(country)
        if not currency:
            raise ValidationError(f"No currency configured for country '{country}'.")
        return currency
