"""Geographic identifier normalization and lookup tables."""

from __future__ import annotations

import re
import unicodedata
from typing import Any, Iterable, Sequence


GEOGRAPHIES = (
    "usa-states",
    "usa-counties",
    "usa-nation",
    "canada-provinces",
    "canada-nation",
    "world",
)
NATIONAL_OUTLINE_GEOGRAPHIES = frozenset({"usa-nation", "canada-nation", "world"})

STATE_CODE_MAP: dict[str, str] = {
    "AL": "Alabama",
    "AK": "Alaska",
    "AZ": "Arizona",
    "AR": "Arkansas",
    "CA": "California",
    "CO": "Colorado",
    "CT": "Connecticut",
    "DE": "Delaware",
    "FL": "Florida",
    "GA": "Georgia",
    "HI": "Hawaii",
    "ID": "Idaho",
    "IL": "Illinois",
    "IN": "Indiana",
    "IA": "Iowa",
    "KS": "Kansas",
    "KY": "Kentucky",
    "LA": "Louisiana",
    "ME": "Maine",
    "MD": "Maryland",
    "MA": "Massachusetts",
    "MI": "Michigan",
    "MN": "Minnesota",
    "MS": "Mississippi",
    "MO": "Missouri",
    "MT": "Montana",
    "NE": "Nebraska",
    "NV": "Nevada",
    "NH": "New Hampshire",
    "NJ": "New Jersey",
    "NM": "New Mexico",
    "NY": "New York",
    "NC": "North Carolina",
    "ND": "North Dakota",
    "OH": "Ohio",
    "OK": "Oklahoma",
    "OR": "Oregon",
    "PA": "Pennsylvania",
    "RI": "Rhode Island",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TN": "Tennessee",
    "TX": "Texas",
    "UT": "Utah",
    "VT": "Vermont",
    "VA": "Virginia",
    "WA": "Washington",
    "WV": "West Virginia",
    "WI": "Wisconsin",
    "WY": "Wyoming",
}

PROVINCE_CODE_MAP: dict[str, str] = {
    "AB": "Alberta",
    "BC": "British Columbia",
    "MB": "Manitoba",
    "NB": "New Brunswick",
    "NL": "Newfoundland and Labrador",
    "NS": "Nova Scotia",
    "ON": "Ontario",
    "PE": "Prince Edward Island",
    "QC": "Quebec",
    "SK": "Saskatchewan",
    "NT": "Northwest Territories",
    "NU": "Nunavut",
    "YT": "Yukon",
}

FIPS_TO_STATE: dict[str, str] = {
    "01": "AL",
    "02": "AK",
    "04": "AZ",
    "05": "AR",
    "06": "CA",
    "08": "CO",
    "09": "CT",
    "10": "DE",
    "11": "DC",
    "12": "FL",
    "13": "GA",
    "15": "HI",
    "16": "ID",
    "17": "IL",
    "18": "IN",
    "19": "IA",
    "20": "KS",
    "21": "KY",
    "22": "LA",
    "23": "ME",
    "24": "MD",
    "25": "MA",
    "26": "MI",
    "27": "MN",
    "28": "MS",
    "29": "MO",
    "30": "MT",
    "31": "NE",
    "32": "NV",
    "33": "NH",
    "34": "NJ",
    "35": "NM",
    "36": "NY",
    "37": "NC",
    "38": "ND",
    "39": "OH",
    "40": "OK",
    "41": "OR",
    "42": "PA",
    "44": "RI",
    "45": "SC",
    "46": "SD",
    "47": "TN",
    "48": "TX",
    "49": "UT",
    "50": "VT",
    "51": "VA",
    "53": "WA",
    "54": "WV",
    "55": "WI",
    "56": "WY",
    "60": "AS",
    "66": "GU",
    "69": "MP",
    "72": "PR",
    "78": "VI",
}

SGC_TO_PROVINCE: dict[str, str] = {
    "10": "NL",
    "11": "PE",
    "12": "NS",
    "13": "NB",
    "24": "QC",
    "35": "ON",
    "46": "MB",
    "47": "SK",
    "48": "AB",
    "59": "BC",
    "60": "YT",
    "61": "NT",
    "62": "NU",
}

COUNTRY_NAME_TO_ISO3: dict[str, str] = {
    "United States": "USA",
    "Canada": "CAN",
    "Mexico": "MEX",
    "Brazil": "BRA",
    "China": "CHN",
    "India": "IND",
    "United Kingdom": "GBR",
    "France": "FRA",
    "Germany": "DEU",
    "Japan": "JPN",
}
ISO3_TO_COUNTRY_NAME = {iso3: name for name, iso3 in COUNTRY_NAME_TO_ISO3.items()}

# Candidate identifiers for the national-outline geographies: name, ISO3, ISO numeric.
COUNTRY_CANDIDATES: dict[str, tuple[str, ...]] = {
    "usa-nation": ("United States", "United States of America", "USA", "840"),
    "canada-nation": ("Canada", "CAN", "124"),
}

STRUCTURAL_GROUP_IDS = frozenset({"Nations", "Countries", "States", "Counties", "Provinces", "Regions"})

_REVERSE_STATE_MAP = {name.casefold(): code for code, name in STATE_CODE_MAP.items()}
_REVERSE_PROVINCE_MAP = {name.casefold(): code for code, name in PROVINCE_CODE_MAP.items()}

_SVG_ID_PATTERNS = (
    re.compile(r"^([A-Z]{2})$"),
    re.compile(r"^([a-zA-Z\s]+)$"),
    re.compile(r"^(\d{5})$"),
    re.compile(r"^(\d{2})$"),
    re.compile(r"^(?:state|province|country|county|region|nation)[_\- ]?([a-zA-Z0-9.\s]+)$", re.IGNORECASE),
)


def strip_diacritics(value: str) -> str:
    folded = unicodedata.normalize("NFD", value)
    return unicodedata.normalize("NFC", "".join(ch for ch in folded if not unicodedata.combining(ch)))


def normalize_geo_identifier(value: Any, geography: str) -> str:
    """Map a raw identifier to the canonical feature key for `geography`.

    Total: never raises. Unmatched subdivision identifiers come back trimmed and
    upper-cased so they still work as (non-matching) keys.
    """
    if value is None:
        return ""
    text = strip_diacritics(str(value).strip())
    if not text:
        return ""

    if geography.startswith("usa-states"):
        if len(text) == 2 and text.isdigit():
            code = FIPS_TO_STATE.get(text)
            if code is not None:
                return code
        if len(text) == 2 and text.upper() in STATE_CODE_MAP:
            return text.upper()
        code = _REVERSE_STATE_MAP.get(text.casefold())
        if code is not None:
            return code
        return text.upper()

    if geography.startswith("canada-provinces"):
        if len(text) == 2 and text.isdigit():
            code = SGC_TO_PROVINCE.get(text)
            if code is not None:
                return code
        if len(text) == 2 and text.upper() in PROVINCE_CODE_MAP:
            return text.upper()
        code = _REVERSE_PROVINCE_MAP.get(text.casefold())
        if code is not None:
            return code
        return text.upper()

    return text


def extract_candidate_from_svg_id(element_id: str | None) -> str | None:
    """Pull the identifier part out of a custom-map element id."""
    if not element_id:
        return None
    for pattern in _SVG_ID_PATTERNS:
        match = pattern.match(element_id)
        if match and match.group(1):
            return match.group(1).strip()
    return None


def subnational_label(geography: str, plural: bool = False) -> str:
    if geography == "usa-states":
        return "States" if plural else "State"
    if geography == "usa-counties":
        return "Counties" if plural else "County"
    if geography == "canada-provinces":
        return "Provinces" if plural else "Province"
    return "Regions" if plural else "Region"


def country_identifiers(feature_id: Any, properties: dict[str, Any]) -> tuple[str, ...]:
    """Identifier candidates of a country feature: id, name, long name, admin name, ISO3."""
    raw = (
        feature_id,
        properties.get("name"),
        properties.get("name_long"),
        properties.get("admin"),
        properties.get("iso_a3"),
    )
    return tuple(str(value) for value in raw if value is not None and str(value) != "")


def find_country_feature(features: Sequence[Any], candidates: Iterable[Any]) -> Any | None:
    """Return the first feature whose identifiers match any candidate, case-insensitively."""
    wanted = {str(candidate).casefold() for candidate in candidates}
    for feature in features:
        identifiers = country_identifiers(feature.id, feature.properties)
        if any(identifier.casefold() in wanted for identifier in identifiers):
            return feature
    return None


def format_state(value: Any, fmt: str, geography: str) -> str:
    if value is None or value == "":
        return ""
    text = str(value).strip()

    if geography == "canada-provinces":
        code = SGC_TO_PROVINCE.get(text, text)
        if fmt == "abbreviated":
            if len(code) == 2 and code.upper() in PROVINCE_CODE_MAP:
                return code.upper()
            return _REVERSE_PROVINCE_MAP.get(text.casefold(), text)
        if fmt == "full":
            if len(code) == 2:
                return PROVINCE_CODE_MAP.get(code.upper(), text)
            return next(
                (name for name in PROVINCE_CODE_MAP.values() if name.casefold() == text.casefold()),
                text,
            )
        return text

    if fmt == "abbreviated":
        if len(text) == 2 and text.upper() in STATE_CODE_MAP:
            return text.upper()
        return _REVERSE_STATE_MAP.get(text.casefold(), text)
    if fmt == "full":
        if len(text) == 2:
            return STATE_CODE_MAP.get(text.upper(), text)
        return next(
            (name for name in STATE_CODE_MAP.values() if name.casefold() == text.casefold()),
            text,
        )
    return text


def format_country(value: Any, fmt: str) -> str:
    if value is None or value == "":
        return ""
    text = str(value).strip()
    if fmt == "iso3":
        if len(text) == 3 and text.upper() in ISO3_TO_COUNTRY_NAME:
            return text.upper()
        return COUNTRY_NAME_TO_ISO3.get(text, text)
    if fmt == "full":
        if len(text) == 3 and text.upper() in ISO3_TO_COUNTRY_NAME:
            return ISO3_TO_COUNTRY_NAME[text.upper()]
        return text
    return text
