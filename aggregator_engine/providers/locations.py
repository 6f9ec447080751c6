"""Static location tables used to normalize provider city/country names.

Both maps are read-only module constants; unmapped input passes through.
"""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping

CITY_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "ho chi minh": "Ho Chi Minh",
        "ho chi minh city": "Ho Chi Minh",
        "hcm": "Ho Chi Minh",
        "hcmc": "Ho Chi Minh",
        "saigon": "Ho Chi Minh",
        "sai gon": "Ho Chi Minh",
        "hanoi": "Hanoi",
        "ha noi": "Hanoi",
    }
)

COUNTRY_CODES: Mapping[str, str] = MappingProxyType(
    {
        # Full names
        "united states": "US",
        "united states of america": "US",
        "united kingdom": "GB",
        "great britain": "GB",
        "vietnam": "VN",
        "viet nam": "VN",
        "japan": "JP",
        "south korea": "KR",
        "russia": "RU",
        "china": "CN",
        "germany": "DE",
        "france": "FR",
        "spain": "ES",
        "italy": "IT",
        "canada": "CA",
        "australia": "AU",
        "brazil": "BR",
        "india": "IN",
        "indonesia": "ID",
        "thailand": "TH",
        "singapore": "SG",
        "malaysia": "MY",
        "philippines": "PH",
        # Common variations
        "america": "US",
        "usa": "US",
        "u.s.": "US",
        "u.s.a.": "US",
        "uk": "GB",
        "u.k.": "GB",
        "england": "GB",
    }
)

_ALPHA2 = re.compile(r"^[A-Za-z]{2}$")


def normalize_city(city: str | None) -> str:
    if not city:
        return ""
    key = " ".join(city.split()).lower()
    if key in CITY_ALIASES:
        return CITY_ALIASES[key]
    return " ".join(word[:1].upper() + word[1:].lower() for word in key.split(" "))


def normalize_country(country: str | None) -> str:
    """Map a country name or provider code to ISO 3166-1 alpha-2."""
    if not country:
        return ""
    value = country.strip()
    # "uk" is a variant, not the ISO code for Ukraine (UA), so check the map first
    mapped = COUNTRY_CODES.get(value.lower())
    if mapped:
        return mapped
    if _ALPHA2.match(value):
        return value.upper()
    return country
