"""Country tax rates, shipping fees and currencies.

Lookups are case-insensitive and accept the common aliases customers type
into the address form ("UK", "United Kingdom", "USA", ...).
"""

from decimal import Decimal

_ALIASES = {
    "united kingdom": "GB",
    "uk": "GB",
    "gb": "GB",
    "great britain": "GB",
    "united states": "US",
    "us": "US",
    "usa": "US",
    "canada": "CA",
    "ca": "CA",
    "australia": "AU",
    "au": "AU",
}

TAX_RATES = {
    "GB": Decimal("0.20"),
    "US": Decimal("0.00"),
    "CA": Decimal("0.05"),
    "AU": Decimal("0.10"),
}

SHIPPING_FEES = {
    "GB": Decimal("4.99"),
    "US": Decimal("9.99"),
    "CA": Decimal("7.99"),
    "AU": Decimal("14.99"),
}
DEFAULT_SHIPPING_FEE = Decimal("4.99")

CURRENCIES = {
    "GB": "gbp",
    "US": "usd",
    "CA": "cad",
    "AU": "aud",
}
_EURO_NAMES = ("euro", "europe")


def normalize_country(country) -> str | None:
    if not country:
        return None
    return _ALIASES.get(str(country).strip().lower())


def tax_rate_for(country) -> Decimal:
    """Unknown destinations are untaxed."""
    return TAX_RATES.get(normalize_country(country), Decimal("0"))


def shipping_fee_for(country) -> Decimal:
    return SHIPPING_FEES.get(normalize_country(country), DEFAULT_SHIPPING_FEE)


def currency_for_country(country, default: str = "gbp") -> str:
    code = normalize_country(country)
    if code in CURRENCIES:
        return CURRENCIES[code]
    if country and any(name in str(country).lower() for name in _EURO_NAMES):
        return "eur"
    return default
