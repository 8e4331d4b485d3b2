"""npm-style version range matching.

Dependency ranges in workspace manifests use npm range syntax
(``^1.2.0``, ``~1.2``, ``>=1.0.0 <2.0.0``, ``1.x || 2.x``, ``1.0.0 - 1.4.0``).
Ranges are desugared into sets of primitive comparators and evaluated with
``semver.Version`` ordering.

Prerelease versions only satisfy a comparator set when one of its
comparators carries a prerelease on the same ``major.minor.patch``, so
``1.1.0-beta.0`` does not satisfy ``^1.0.0`` but does satisfy
``>=1.1.0-beta.0``.
"""

from __future__ import annotations

import operator
import re
from collections.abc import Callable

import semver

Comparator = tuple[str, semver.Version]

_OPERATORS: dict[str, Callable[[semver.Version, semver.Version], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "=": operator.eq,
}

_PARTIAL_RE = re.compile(
    r"^v?(?P<major>\d+|[xX*])"
    r"(?:\.(?P<minor>\d+|[xX*]))?"
    r"(?:\.(?P<patch>\d+|[xX*]))?"
    r"(?:-(?P<pre>[0-9A-Za-z.-]+))?"
    r"(?:\+[0-9A-Za-z.-]+)?$"
)
_TOKEN_RE = re.compile(r"^(?P<op>\^|~>?|[<>]=?|=)?(?P<version>.*)$")
_HYPHEN_RE = re.compile(r"^(?P<low>\S+)\s+-\s+(?P<high>\S+)$")

# Matches nothing: no release is lower than 0.0.0-0.
_NOTHING: list[Comparator] = [("<", semver.Version(0, 0, 0, prerelease="0"))]


class InvalidRangeError(ValueError):
    """Raised for range strings that cannot be parsed."""


def _is_wild(part: str | None) -> bool:
    return part is None or part in ("x", "X", "*")


def _parse_partial(text: str) -> tuple[int | None, int | None, int | None, str | None]:
    """Parse a possibly partial version; wildcard or missing parts become None."""
    if text == "":
        return None, None, None, None
    match = _PARTIAL_RE.match(text)
    if not match:
        raise InvalidRangeError(text)
    parts: list[int | None] = []
    wild = False
    for name in ("major", "minor", "patch"):
        value = match.group(name)
        # Everything after the first wildcard is a wildcard too.
        if wild or _is_wild(value):
            wild = True
            parts.append(None)
        else:
            parts.append(int(value))
    pre = match.group("pre") if not wild else None
    return parts[0], parts[1], parts[2], pre


def _v(major: int, minor: int = 0, patch: int = 0, pre: str | None = None) -> semver.Version:
    return semver.Version(major, minor, patch, prerelease=pre)


def _floor(major: int, minor: int = 0, patch: int = 0) -> semver.Version:
    """The lowest possible version below ``major.minor.patch``'s release."""
    return _v(major, minor, patch, "0")


def _desugar(op: str, text: str) -> list[Comparator]:
    major, minor, patch, pre = _parse_partial(text)

    if op in ("", "="):
        if major is None:
            return []
        if minor is None:
            return [(">=", _v(major)), ("<", _floor(major + 1))]
        if patch is None:
            return [(">=", _v(major, minor)), ("<", _floor(major, minor + 1))]
        return [("=", _v(major, minor, patch, pre))]

    if op == "^":
        if major is None:
            return []
        if minor is None:
            return [(">=", _v(major)), ("<", _floor(major + 1))]
        if patch is None:
            if major == 0:
                return [(">=", _v(0, minor)), ("<", _floor(0, minor + 1))]
            return [(">=", _v(major, minor)), ("<", _floor(major + 1))]
        low = _v(major, minor, patch, pre)
        if major == 0:
            if minor == 0:
                return [(">=", low), ("<", _floor(0, 0, patch + 1))]
            return [(">=", low), ("<", _floor(0, minor + 1))]
        return [(">=", low), ("<", _floor(major + 1))]

    if op in ("~", "~>"):
        if major is None:
            return []
        if minor is None:
            return [(">=", _v(major)), ("<", _floor(major + 1))]
        if patch is None:
            return [(">=", _v(major, minor)), ("<", _floor(major, minor + 1))]
        return [(">=", _v(major, minor, patch, pre)), ("<", _floor(major, minor + 1))]

    if op == ">":
        if major is None:
            return list(_NOTHING)
        if minor is None:
            return [(">=", _v(major + 1))]
        if patch is None:
            return [(">=", _v(major, minor + 1))]
        return [(">", _v(major, minor, patch, pre))]

    if op == ">=":
        if major is None:
            return []
        return [(">=", _v(major, minor or 0, patch or 0, pre))]

    if op == "<":
        if major is None:
            return list(_NOTHING)
        if minor is None:
            return [("<", _floor(major))]
        if patch is None:
            return [("<", _floor(major, minor))]
        return [("<", _v(major, minor, patch, pre))]

    if op == "<=":
        if major is None:
            return []
        if minor is None:
            return [("<", _floor(major + 1))]
        if patch is None:
            return [("<", _floor(major, minor + 1))]
        return [("<=", _v(major, minor, patch, pre))]

    raise InvalidRangeError(op + text)


def _hyphen(low_text: str, high_text: str) -> list[Comparator]:
    comparators: list[Comparator] = []
    major, minor, patch, pre = _parse_partial(low_text)
    if major is not None:
        comparators.append((">=", _v(major, minor or 0, patch or 0, pre)))
    major, minor, patch, pre = _parse_partial(high_text)
    if major is not None:
        if minor is None:
            comparators.append(("<", _floor(major + 1)))
        elif patch is None:
            comparators.append(("<", _floor(major, minor + 1)))
        else:
            comparators.append(("<=", _v(major, minor, patch, pre)))
    return comparators


def parse_range(version_range: str) -> list[list[Comparator]]:
    """Desugar a range into alternative comparator sets.

    Raises:
        InvalidRangeError: If the range cannot be parsed.
    """
    alternatives: list[list[Comparator]] = []
    for alternative in version_range.strip().split("||"):
        alternative = alternative.strip()
        hyphen = _HYPHEN_RE.match(alternative)
        if hyphen:
            alternatives.append(_hyphen(hyphen.group("low"), hyphen.group("high")))
            continue
        # Glue operators to their operand: ">= 1.0.0" → ">=1.0.0"
        alternative = re.sub(r"(\^|~>?|[<>]=?|=)\s+", r"\1", alternative)
        comparators: list[Comparator] = []
        for token in alternative.split():
            match = _TOKEN_RE.match(token)
            if not match:
                raise InvalidRangeError(token)
            comparators.extend(_desugar(match.group("op") or "", match.group("version")))
        alternatives.append(comparators)
    return alternatives


def _test_set(version: semver.Version, comparators: list[Comparator]) -> bool:
    for op, bound in comparators:
        if not _OPERATORS[op](version, bound):
            return False
    if version.prerelease:
        return any(
            bound.prerelease
            and (bound.major, bound.minor, bound.patch)
            == (version.major, version.minor, version.patch)
            for _, bound in comparators
        )
    return True


def satisfies(version: str, version_range: str) -> bool:
    """Return True if ``version`` is inside ``version_range``.

    Invalid versions and unparseable ranges (e.g. ``file:../pkg``) never
    match.
    """
    try:
        parsed = semver.Version.parse(version.strip().removeprefix("v"))
        alternatives = parse_range(version_range)
    except (ValueError, TypeError):
        return False
    return any(_test_set(parsed, comparators) for comparators in alternatives)


def get_version_range_type(version_range: str) -> str:
    """Return the leading operator of a range.

    Not used by the planner itself. Tools that rewrite dependency ranges
    after a release use it to keep the operator a range was written with.

    Examples:
        "^1.0.0" → "^"
        ">=1.0.0" → ">="
        "1.0.0" → ""
    """
    for prefix in ("^", "~", ">=", "<=", ">", "<"):
        if version_range.startswith(prefix):
            return prefix
    return ""
