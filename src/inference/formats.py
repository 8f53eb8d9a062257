"""String format detection.

Detectors run in a fixed precedence order and the first match wins, so
a value is never counted under two formats.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Callable

_DATE_TIME = re.compile(
    r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])[T ]([01]\d|2[0-3]):[0-5]\d:[0-5]\d"
    r"(\.\d+)?(Z|[+-]\d{2}:?\d{2})?$"
)
_DATE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])-(0[1-9]|[12]\d|3[01])$")
_TIME = re.compile(r"^([01]\d|2[0-3]):[0-5]\d(:[0-5]\d(\.\d+)?)?(Z|[+-]\d{2}:\d{2})?$")
_EMAIL = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
_URI = re.compile(r"^[A-Za-z][A-Za-z0-9+.-]*://\S+$")
_UUID = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_HOSTNAME = re.compile(
    r"^(?=.{1,253}$)([A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?\.)+[A-Za-z]{2,63}$"
)
_IPV4 = re.compile(r"^((25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}(25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)$")
_SEMVER = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(-[0-9A-Za-z.-]+)?(\+[0-9A-Za-z.-]+)?$"
)
_COUNTRY_CODE = re.compile(r"^[A-Z]{2}$")
_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")
_LANGUAGE_CODE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")
_MIME_TYPE = re.compile(
    r"^(application|audio|font|image|message|model|multipart|text|video)"
    r"/[A-Za-z0-9][A-Za-z0-9!#$&^_.+-]*$"
)
_BASE64 = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")
_JWT = re.compile(r"^eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]*$")
_SLUG = re.compile(r"^[a-z0-9]+(-[a-z0-9]+)+$")
_PHONE = re.compile(r"^\+?[1-9]\d{7,14}$")
_MIN_BASE64_LENGTH = 16


def _is_ipv6(value: str) -> bool:
    if ":" not in value:
        return False
    try:
        ipaddress.IPv6Address(value)
    except ValueError:
        return False
    return True


def _is_base64(value: str) -> bool:
    if len(value) < _MIN_BASE64_LENGTH or len(value) % 4 != 0:
        return False
    if not _BASE64.match(value):
        return False
    return any(char.isalpha() for char in value) and not value.isalpha()


FORMAT_DETECTORS: tuple[tuple[str, Callable[[str], bool]], ...] = (
    ("date-time", lambda value: bool(_DATE_TIME.match(value))),
    ("date", lambda value: bool(_DATE.match(value))),
    ("time", lambda value: bool(_TIME.match(value))),
    ("email", lambda value: bool(_EMAIL.match(value))),
    ("uri", lambda value: bool(_URI.match(value))),
    ("uuid", lambda value: bool(_UUID.match(value))),
    ("hostname", lambda value: bool(_HOSTNAME.match(value))),
    ("ipv4", lambda value: bool(_IPV4.match(value))),
    ("ipv6", _is_ipv6),
    ("semver", lambda value: bool(_SEMVER.match(value))),
    ("country-code", lambda value: bool(_COUNTRY_CODE.match(value))),
    ("currency-code", lambda value: bool(_CURRENCY_CODE.match(value))),
    ("language-code", lambda value: bool(_LANGUAGE_CODE.match(value))),
    ("mime-type", lambda value: bool(_MIME_TYPE.match(value))),
    ("base64", _is_base64),
    ("jwt", lambda value: bool(_JWT.match(value))),
    ("slug", lambda value: bool(_SLUG.match(value))),
    ("phone", lambda value: bool(_PHONE.match(value))),
)
FORMAT_PRECEDENCE: tuple[str, ...] = tuple(name for name, _ in FORMAT_DETECTORS)


def detect_format(value: str) -> str | None:
    """Return the first matching format name for a string value.

    Args:
        value: String to classify.

    Returns:
        Format name, or ``None`` when no detector matches.
    """
    if not value:
        return None
    for format_name, detector in FORMAT_DETECTORS:
        if detector(value):
            return format_name
    return None


def format_rank(format_name: str) -> int:
    """Return the precedence rank of a format; unknown formats sort last."""
    if format_name in FORMAT_PRECEDENCE:
        return FORMAT_PRECEDENCE.index(format_name)
    return len(FORMAT_PRECEDENCE)
