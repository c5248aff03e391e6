from typing import Optional, Dict, Union

from consultation_slots.logging_config import get_logger
from consultation_slots.models import RegionPrice, PriceQuote, ConsultationKind
from .kinds import resolve_kind
from .timezones import normalize_timezone, region_of, is_india_family, INDIA_CITY_TOKENS


logger = get_logger(__name__)


def _price(initial: int, followup: int, currency: str, symbol: str) -> RegionPrice:
    return RegionPrice(currency=currency, symbol=symbol, initial=initial, followup=followup)


# Declaration order matters: the region fallback takes the first entry
# sharing the visitor's region prefix.
REGION_PRICING: Dict[str, RegionPrice] = {
    # North America
    "America/New_York": _price(150, 105, "USD", "$"),
    "America/Chicago": _price(150, 105, "USD", "$"),
    "America/Denver": _price(150, 105, "USD", "$"),
    "America/Los_Angeles": _price(150, 105, "USD", "$"),
    "America/Toronto": _price(180, 125, "CAD", "CA$"),

    # Europe
    "Europe/London": _price(120, 85, "GBP", "£"),
    "Europe/Paris": _price(130, 90, "EUR", "€"),
    "Europe/Berlin": _price(130, 90, "EUR", "€"),
    "Europe/Madrid": _price(130, 90, "EUR", "€"),
    "Europe/Rome": _price(130, 90, "EUR", "€"),

    # Middle East
    "Asia/Dubai": _price(140, 95, "AED", "AED"),
    "Asia/Riyadh": _price(140, 95, "SAR", "SAR"),
    "Asia/Jerusalem": _price(140, 95, "ILS", "₪"),

    # Asia Pacific
    "Asia/Singapore": _price(120, 85, "SGD", "S$"),
    "Asia/Hong_Kong": _price(120, 85, "HKD", "HK$"),
    "Asia/Tokyo": _price(125, 90, "JPY", "¥"),
    "Asia/Shanghai": _price(100, 70, "CNY", "¥"),
    "Asia/Kolkata": _price(2500, 1800, "INR", "₹"),

    # Australia & NZ
    "Australia/Sydney": _price(180, 125, "AUD", "AU$"),
    "Australia/Melbourne": _price(180, 125, "AUD", "AU$"),
    "Pacific/Auckland": _price(190, 135, "NZD", "NZ$"),

    # Africa
    "Africa/Johannesburg": _price(100, 70, "ZAR", "R"),
    "Africa/Cairo": _price(90, 65, "EGP", "E£"),
    "Africa/Lagos": _price(85, 60, "NGN", "₦"),

    # South America
    "America/Sao_Paulo": _price(100, 70, "BRL", "R$"),
    "America/Buenos_Aires": _price(95, 65, "ARS", "AR$"),
    "America/Mexico_City": _price(110, 75, "MXN", "MX$"),
}

INDIA_PRICE = REGION_PRICING["Asia/Kolkata"]

DEFAULT_PRICE = _price(150, 105, "USD", "$")

COUNTRY_BY_TIMEZONE: Dict[str, str] = {
    "America/New_York": "United States",
    "America/Chicago": "United States",
    "America/Denver": "United States",
    "America/Los_Angeles": "United States",
    "America/Toronto": "Canada",
    "Europe/London": "United Kingdom",
    "Europe/Paris": "France",
    "Europe/Berlin": "Germany",
    "Europe/Madrid": "Spain",
    "Europe/Rome": "Italy",
    "Asia/Dubai": "United Arab Emirates",
    "Asia/Riyadh": "Saudi Arabia",
    "Asia/Jerusalem": "Israel",
    "Asia/Singapore": "Singapore",
    "Asia/Hong_Kong": "Hong Kong",
    "Asia/Tokyo": "Japan",
    "Asia/Shanghai": "China",
    "Asia/Kolkata": "India",
    "Australia/Sydney": "Australia",
    "Australia/Melbourne": "Australia",
    "Pacific/Auckland": "New Zealand",
    "Africa/Johannesburg": "South Africa",
    "Africa/Cairo": "Egypt",
    "Africa/Lagos": "Nigeria",
    "America/Sao_Paulo": "Brazil",
    "America/Buenos_Aires": "Argentina",
    "America/Mexico_City": "Mexico",
}

INTERNATIONAL = "International"

# Country display also accepts identifiers naming the country itself
INDIA_COUNTRY_TOKENS = ("India",) + INDIA_CITY_TOKENS


class RegionPricingResolver:
    """
    Resolves a visitor's timezone to regional consultation prices.

    Lookup order:
        1. Exact match (after alias normalisation, e.g. Asia/Calcutta)
        2. Identifiers mentioning Asia and an Indian city, or Asia/Colombo -> INR
        3. First table entry sharing the region prefix (Asia/, Europe/, ...)
        4. USD default

    Total: every input, including None and garbage, yields a RegionPrice.
    """

    def __init__(
        self,
        table: Optional[Dict[str, RegionPrice]] = None,
        default: RegionPrice = DEFAULT_PRICE
    ):
        self.table = dict(REGION_PRICING if table is None else table)
        self.default = default

    def resolve(self, timezone_id: Optional[str]) -> RegionPrice:
        raw = timezone_id.strip() if isinstance(timezone_id, str) else ""
        normalized = normalize_timezone(raw)

        for candidate in (normalized, raw):
            if candidate and candidate in self.table:
                return self.table[candidate]

        if is_india_family(raw):
            return INDIA_PRICE

        region = region_of(normalized)
        if region:
            for tz_name, price in self.table.items():
                if tz_name.split("/", 1)[0] == region:
                    return price

        logger.debug("pricing_default_used", timezone=raw)
        return self.default

    def country_for(self, timezone_id: Optional[str]) -> str:
        """Country name for display, or "International" when unknown"""
        raw = timezone_id.strip() if isinstance(timezone_id, str) else ""
        normalized = normalize_timezone(raw)

        for candidate in (normalized, raw):
            if candidate in COUNTRY_BY_TIMEZONE:
                return COUNTRY_BY_TIMEZONE[candidate]

        if "Asia" in raw and any(token in raw for token in INDIA_COUNTRY_TOKENS):
            return "India"
        return INTERNATIONAL

    def quote(
        self,
        timezone_id: Optional[str],
        kind: Union[ConsultationKind, str],
        kinds: Optional[Dict[str, ConsultationKind]] = None
    ) -> PriceQuote:
        """Price of a consultation kind for the visitor's timezone"""
        kind = resolve_kind(kind, kinds)
        price = self.resolve(timezone_id)
        return PriceQuote(
            timezone=timezone_id if isinstance(timezone_id, str) else None,
            country=self.country_for(timezone_id),
            consultation_type=kind.key,
            currency=price.currency,
            symbol=price.symbol,
            amount=price.amount_for(kind),
        )


# Singleton instance
pricing_resolver = RegionPricingResolver()
