"""Version parsing and Composer constraint matching.

Handles the version strings Composer and Packagist publish: up to four
numeric parts with an optional stability suffix (``5.0.0-RC1``, ``2.1.0-beta.2``).
Constraints use Composer's syntax, with ``|``/``||`` separating alternatives
and commas or spaces joining clauses that must all hold.
"""

from __future__ import annotations

import re

_VERSION_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:\.(\d+))?(?:[-_.+]?(.*))?$")
_SUFFIX_RE = re.compile(r"^(alpha|beta|patch|dev|rc|pl|a|b|p)?[-_.]?(\d*)")
_CLAUSE_RE = re.compile(r"^(>=|<=|!=|==|>|<|=|\^|~)?(.+)$")

_STABILITY = {
    "dev": 0,
    "alpha": 1, "a": 1,
    "beta": 2, "b": 2,
    "rc": 3,
    "": 4,
    "patch": 5, "pl": 5, "p": 5,
}


def version_key(version: str) -> tuple[int, ...]:
    """Sortable key for a version string. Raises ValueError if unparseable."""
    m = _VERSION_RE.match(version.strip().lower())
    if not m:
        raise ValueError(f"Unparseable version: {version!r}")
    numbers = tuple(int(part or 0) for part in m.group(1, 2, 3, 4))
    suffix = m.group(5) or ""
    s = _SUFFIX_RE.match(suffix)
    word, num = (s.group(1) or "", s.group(2)) if s else ("", "")
    if suffix and not word and not num:
        word = "dev"
    return (*numbers, _STABILITY[word], int(num or 0))


def compare_versions(a: str, b: str) -> int:
    ka, kb = version_key(a), version_key(b)
    return (ka > kb) - (ka < kb)


def is_stable(version: str) -> bool:
    return version_key(version)[4] >= _STABILITY[""]


def bump_kind(current: str, available: str) -> str:
    """Classify the jump from ``current`` to ``available`` as major/minor/patch."""
    cur, new = version_key(current), version_key(available)
    if new[0] != cur[0]:
        return "major"
    if new[1] != cur[1]:
        return "minor"
    return "patch"


def minimum_version(constraint: str) -> str | None:
    """Lowest version a simple constraint like ``^8.2`` or ``>=8.0.2`` accepts."""
    lowest: str | None = None
    for alternative in _alternatives(constraint):
        for clause in _clauses(alternative):
            m = _CLAUSE_RE.match(clause)
            if not m or m.group(1) in ("<", "<=", "!="):
                continue
            candidate = m.group(2).rstrip(".*")
            try:
                version_key(candidate)
            except ValueError:
                continue
            if lowest is None or compare_versions(candidate, lowest) < 0:
                lowest = candidate
    return lowest


def satisfies(version: str, constraint: str) -> bool:
    """Return True if ``version`` matches the Composer ``constraint``."""
    for alternative in _alternatives(constraint):
        clauses = _clauses(alternative)
        if clauses and all(_match_clause(version, c) for c in clauses):
            return True
    return False


def _alternatives(constraint: str) -> list[str]:
    return [a for a in re.split(r"\s*\|\|?\s*", constraint.strip()) if a]


def _clauses(alternative: str) -> list[str]:
    normalized = re.sub(r"(>=|<=|!=|==|>|<|=)\s+", r"\1", alternative)
    return [c for c in re.split(r"[\s,]+", normalized) if c]


def _match_clause(version: str, clause: str) -> bool:
    m = _CLAUSE_RE.match(clause)
    if not m:
        return False
    op, target = m.group(1) or "==", m.group(2)
    if target == "*":
        return True
    if target.endswith(".*"):
        prefix = version_key(target[:-2])
        depth = target[:-2].count(".") + 1
        return version_key(version)[:depth] == prefix[:depth]

    cmp = compare_versions(version, target)
    if op == "^":
        return cmp >= 0 and version_key(version)[0] == version_key(target)[0]
    if op == "~":
        depth = max(target.count("."), 1)
        return cmp >= 0 and version_key(version)[:depth] == version_key(target)[:depth]
    return {
        ">=": cmp >= 0,
        "<=": cmp <= 0,
        ">": cmp > 0,
        "<": cmp < 0,
        "!=": cmp != 0,
        "==": cmp == 0,
        "=": cmp == 0,
    }[op]
