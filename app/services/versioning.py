"""Dot-separated numeric version parsing and comparison.

Versions are tuples of non-negative integers compared lexicographically, with
missing trailing segments treated as zero ("1.2" == "1.2.0"). Anything else
fails closed: is_newer returns False rather than raising, so a single odd
version string never blocks a batch check.
"""

import logging

logger = logging.getLogger(__name__)


def parse_version(version: str) -> tuple[int, ...] | None:
    """Parse '1.10.0' into (1, 10, 0). Returns None when any segment is not a non-negative integer."""
    if not version or not isinstance(version, str):
        return None
    parts = version.strip().split(".")
    if not all(p.isdigit() and p.isascii() for p in parts):
        return None
    return tuple(int(p) for p in parts)


def _padded(a: tuple[int, ...], b: tuple[int, ...]) -> tuple[tuple[int, ...], tuple[int, ...]]:
    width = max(len(a), len(b))
    return a + (0,) * (width - len(a)), b + (0,) * (width - len(b))


def compare_versions(current: str, latest: str) -> int | None:
    """Return -1, 0 or 1 as current is older, equal or newer than latest; None if either is unparseable."""
    a = parse_version(current)
    b = parse_version(latest)
    if a is None or b is None:
        return None
    a, b = _padded(a, b)
    return (a > b) - (a < b)


def is_newer(current: str, latest: str) -> bool:
    """True iff latest is strictly newer than current. Unparseable input means no update."""
    result = compare_versions(current, latest)
    if result is None:
        logger.debug("Unparseable version pair current=%r latest=%r; treating as no update", current, latest)
        return False
    return result < 0
