"""Human-readable byte sizes, both decimal (kB, MB) and binary (KiB, MiB)."""

from __future__ import annotations

import math
from typing import Mapping, Sequence

KB = 1000
MB = 1000 * KB
GB = 1000 * MB
TB = 1000 * GB
PB = 1000 * TB

KiB = 1024
MiB = 1024 * KiB
GiB = 1024 * MiB
TiB = 1024 * GiB
PiB = 1024 * TiB

_DECIMAL_MAP = {"k": KB, "m": MB, "g": GB, "t": TB, "p": PB}
_BINARY_MAP = {"k": KiB, "m": MiB, "g": GiB, "t": TiB, "p": PiB}

DECIMAL_ABBRS = ("B", "kB", "MB", "GB", "TB", "PB", "EB", "ZB", "YB")
BINARY_ABBRS = ("B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB", "YiB")


def _size_and_unit(size: float, base: float, units: Sequence[str]) -> tuple[float, str]:
    index = 0
    limit = len(units) - 1
    while size >= base and index < limit:
        size /= base
        index += 1
    return size, units[index]


def custom_size(fmt: str, size: float, base: float, units: Sequence[str]) -> str:
    """Format `size` scaled by `base` with a %-style format taking a number and a unit."""
    scaled, unit = _size_and_unit(size, base, units)
    return fmt % (scaled, unit)


def human_size_with_precision(size: float, precision: int) -> str:
    """Decimal size with the given number of significant digits."""
    scaled, unit = _size_and_unit(size, 1000.0, DECIMAL_ABBRS)
    return "%.*g%s" % (precision, scaled, unit)


def human_size(size: float) -> str:
    """Decimal size capped at four significant digits, e.g. '2.746MB'."""
    return human_size_with_precision(size, 4)


def bytes_size(size: float) -> str:
    """Binary size capped at four significant digits, e.g. '44KiB'."""
    return custom_size("%.4g%s", size, 1024.0, BINARY_ABBRS)


def from_human_size(size: str) -> int:
    """Parse an SI size such as '44kB' or '17MB' into bytes."""
    return _parse_size(size, _DECIMAL_MAP)


def ram_in_bytes(size: str) -> int:
    """Parse a binary size such as '44k', '17MiB' or '3Gb' into bytes."""
    return _parse_size(size, _BINARY_MAP)


def _parse_float(number: str, original: str) -> float:
    if not number or "_" in number or any(ch.isspace() for ch in number):
        raise ValueError(f"invalid size: '{original}'")
    try:
        value = float(number)
    except ValueError as exc:
        raise ValueError(f"invalid size: '{original}'") from exc
    if not math.isfinite(value):
        raise ValueError(f"invalid size: '{original}'")
    return value


def _parse_size(text: str, multipliers: Mapping[str, int]) -> int:
    sep = max(text.rfind(ch) for ch in "0123456789. ")
    if sep == -1:
        raise ValueError(f"invalid size: '{text}'")
    if text[sep] != " ":
        number, suffix = text[: sep + 1], text[sep + 1 :]
    else:
        number, suffix = text[:sep], text[sep + 1 :]

    value = _parse_float(number, text)
    if value < 0:
        raise ValueError(f"invalid size: '{text}'")
    if not suffix:
        return int(value)

    if len(suffix) > 3:
        raise ValueError(f"invalid suffix: '{suffix}'")
    suffix = suffix.lower()
    if suffix[0] == "b":
        if len(suffix) > 1:
            raise ValueError(f"invalid suffix: '{suffix}'")
        return int(value)

    multiplier = multipliers.get(suffix[0])
    if multiplier is None:
        raise ValueError(f"invalid suffix: '{suffix}'")
    value *= multiplier

    if (len(suffix) == 2 and suffix[1] != "b") or (len(suffix) == 3 and suffix[1:] != "ib"):
        raise ValueError(f"invalid suffix: '{suffix}'")
    return int(value)