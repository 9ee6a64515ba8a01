"""
Zone matrix matching: city beats country beats continent.
"""
from __future__ import annotations

from typing import Iterable, Optional

from domain.catalog.entity import Address, ShippingZone, ZoneType

_CONTINENT_COUNTRIES = {
    "europe": (
        "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "EE", "FI", "FR", "DE", "GR", "HU", "IE",
        "IT", "LV", "LT", "LU", "MT", "NL", "PL", "PT", "RO", "SK", "SI", "ES", "SE", "GB",
        "NO", "CH",
    ),
    "north-america": ("CA", "MX", "US"),
    "asia": ("CN", "HK", "IN", "ID", "IL", "JP", "MY", "PH", "SG", "KR", "TW", "TH", "TR", "VN"),
    "oceania": ("AU", "NZ"),
    "south-america": ("AR", "BR", "CL", "CO"),
    "africa": ("EG", "KE", "MA", "NG", "ZA", "TZ", "UG"),
}

COUNTRY_TO_CONTINENT = {
    country: continent
    for continent, countries in _CONTINENT_COUNTRIES.items()
    for country in countries
}

_SPECIFICITY = {ZoneType.CITY: 0, ZoneType.COUNTRY: 1, ZoneType.CONTINENT: 2}


def continent_for(country: str) -> Optional[str]:
    return COUNTRY_TO_CONTINENT.get((country or "").upper())


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def zone_matches(zone: ShippingZone, destination: Address) -> bool:
    code = _normalize(zone.code)
    if zone.zone_type == ZoneType.CITY:
        # City codes are "CC:city" or a bare city name
        if ":" in code:
            country, city = code.split(":", 1)
            return country == _normalize(destination.country) and city == _normalize(destination.city)
        return bool(destination.city) and code == _normalize(destination.city)
    if zone.zone_type == ZoneType.COUNTRY:
        return code == _normalize(destination.country)
    if zone.zone_type == ZoneType.CONTINENT:
        return code == _normalize(continent_for(destination.country))
    return False


def match_zone(zones: Iterable[ShippingZone], destination: Address) -> Optional[ShippingZone]:
    """Most specific matching zone; ties go to the cheapest rate."""
    candidates = [z for z in zones if zone_matches(z, destination)]
    if not candidates:
        return None
    return min(candidates, key=lambda z: (_SPECIFICITY[z.zone_type], z.rate))
