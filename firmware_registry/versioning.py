"""Dotted-numeric version ordering used to decide update eligibility."""
import enum


class Comparison(enum.Enum):
    LESS = -1
    EQUAL = 0
    GREATER = 1


def _segment(part: str) -> int:
    # Non-numeric segments count as 0
    part = part.strip()
    if part.isascii() and part.isdigit():
        return int(part)
    return 0


def parse_version(version: str) -> tuple[int, ...]:
    """Split ``version`` on dots, coercing unparseable segments to 0."""
    return tuple(_segment(part) for part in version.split("."))


def is_well_formed(version: str | None) -> bool:
    """True if every dot-separated segment is a non-negative integer."""
    if not version:
        return False
    return all(part.isascii() and part.isdigit() for part in version.split("."))


def compare_versions(a: str | None, b: str | None) -> Comparison | None:
    """
    Compare two versions segment by segment, zero-padding the shorter one.

    Returns None when either side is empty or absent: there is no baseline to
    order against, and callers must not read that as EQUAL.
    """
    if not a or not b:
        return None

    left, right = parse_version(a), parse_version(b)
    width = max(len(left), len(right))
    left += (0,) * (width - len(left))
    right += (0,) * (width - len(right))

    for x, y in zip(left, right):
        if x > y:
            return Comparison.GREATER
        if x < y:
            return Comparison.LESS
    return Comparison.EQUAL


def update_available(latest: str | None, current: str | None) -> bool:
    """True only if ``latest`` is strictly newer than ``current``."""
    return compare_versions(latest, current) is Comparison.GREATER
