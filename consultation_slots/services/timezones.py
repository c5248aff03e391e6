"""
Timezone identifier aliases.

Browsers and OS images still report legacy IANA names (Asia/Calcutta) or
city-level identifiers that are not real zones (Asia/Mumbai). Pricing and
time-label rendering both normalise through this table.
"""
from typing import Optional

# Legacy or city-level identifier -> canonical zone
TIMEZONE_ALIASES = {
    "Asia/Calcutta": "Asia/Kolkata",
    "Asia/Mumbai": "Asia/Kolkata",
    "Asia/Delhi": "Asia/Kolkata",
    "Asia/Chennai": "Asia/Kolkata",
    "Asia/Bangalore": "Asia/Kolkata",
    "Asia/Saigon": "Asia/Ho_Chi_Minh",
    "Asia/Katmandu": "Asia/Kathmandu",
    "US/Eastern": "America/New_York",
    "US/Central": "America/Chicago",
    "US/Mountain": "America/Denver",
    "US/Pacific": "America/Los_Angeles",
}

INDIA_CITY_TOKENS = ("Kolkata", "Calcutta", "Mumbai", "Delhi", "Chennai", "Bangalore")

# Priced like India
INDIA_PRICED_ZONES = ("Asia/Colombo",)


def normalize_timezone(timezone_id: Optional[str]) -> str:
    """Strip and map aliases to their canonical zone; non-strings become ''"""
    if not isinstance(timezone_id, str):
        return ""
    timezone_id = timezone_id.strip()
    return TIMEZONE_ALIASES.get(timezone_id, timezone_id)


def region_of(timezone_id: Optional[str]) -> str:
    """'Asia/Tokyo' -> 'Asia'; identifiers without a region give ''"""
    normalized = normalize_timezone(timezone_id)
    if "/" not in normalized:
        return ""
    return normalized.split("/", 1)[0]


def is_india_family(timezone_id: Optional[str]) -> bool:
    """Identifiers mentioning Asia and an Indian city, plus zones priced like India"""
    if not isinstance(timezone_id, str):
        return False
    timezone_id = timezone_id.strip()
    if timezone_id in INDIA_PRICED_ZONES:
        return True
    if "Asia" not in timezone_id:
        return False
    return any(token in timezone_id for token in INDIA_CITY_TOKENS)


def same_family(first: Optional[str], second: Optional[str]) -> bool:
    """True when two identifiers name the same zone once aliases are resolved"""
    a, b = normalize_timezone(first), normalize_timezone(second)
    if not a or not b:
        return False
    if a == b:
        return True
    return is_india_family(a) and is_india_family(b) and a not in INDIA_PRICED_ZONES and b not in INDIA_PRICED_ZONES
