"""Pick the best version from a packument-shaped mapping.

npm ranges are translated to ``packaging`` specifier sets. A ``||`` range
becomes a list of alternatives; a version satisfies the range when it
satisfies any of them.
"""
import logging
import re
from typing import Any, List, Mapping, Optional

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from pkgfetch.core.errors import NoMatchingVersionError

logger = logging.getLogger(__name__)

_PARTIAL = re.compile(r"^[v=]*(\d+|[xX*])(?:\.(\d+|[xX*]))?(?:\.(\d+|[xX*]))?([-+].*)?$")
_COMPARATOR = re.compile(r"^(>=|<=|>|<|=)?\s*(.+)$")
_FULL_VERSION = re.compile(r"^[v=]*\d+\.\d+\.\d+(?:[-+]\S*)?$")


def parse_version(text: str) -> Optional[Version]:
    """Parse an npm version string, or return None if packaging rejects it."""
    try:
        return Version(text.strip().lstrip("v="))
    except InvalidVersion:
        return None


def _is_wild(part: Optional[str]) -> bool:
    return part is None or part in ("x", "X", "*")


def _partial(text: str):
    match = _PARTIAL.match(text.strip())
    if not match:
        return None
    major, minor, patch, pre = match.groups()
    return major, minor, patch, pre or ""


def _caret(text: str) -> Optional[List[str]]:
    parts = _partial(text)
    if parts is None:
        return None
    major, minor, patch, pre = parts
    if _is_wild(major):
        return []
    ma = int(major)
    if _is_wild(minor):
        return [f">={ma}.0.0", f"<{ma + 1}.0.0"]
    mi = int(minor)
    if _is_wild(patch):
        if ma == 0:
            return [f">=0.{mi}.0", f"<0.{mi + 1}.0"]
        return [f">={ma}.{mi}.0", f"<{ma + 1}.0.0"]
    low = f">={ma}.{mi}.{patch}{pre}"
    if ma > 0:
        return [low, f"<{ma + 1}.0.0"]
    if mi > 0:
        return [low, f"<0.{mi + 1}.0"]
    return [low, f"<0.0.{int(patch) + 1}"]


def _tilde(text: str) -> Optional[List[str]]:
    parts = _partial(text)
    if parts is None:
        return None
    major, minor, patch, pre = parts
    if _is_wild(major):
        return []
    ma = int(major)
    if _is_wild(minor):
        return [f">={ma}.0.0", f"<{ma + 1}.0.0"]
    mi = int(minor)
    low = f">={ma}.{mi}.{0 if _is_wild(patch) else patch}{'' if _is_wild(patch) else pre}"
    return [low, f"<{ma}.{mi + 1}.0"]


def _x_range(text: str) -> Optional[List[str]]:
    parts = _partial(text)
    if parts is None:
        return None
    major, minor, patch, pre = parts
    if _is_wild(major):
        return []
    ma = int(major)
    if _is_wild(minor):
        return [f">={ma}.0.0", f"<{ma + 1}.0.0"]
    mi = int(minor)
    if _is_wild(patch):
        return [f">={ma}.{mi}.0", f"<{ma}.{mi + 1}.0"]
    return [f"=={ma}.{mi}.{patch}{pre}"]


def _comparator(op: str, text: str) -> Optional[List[str]]:
    parts = _partial(text)
    if parts is None:
        return None
    major, minor, patch, pre = parts
    if _is_wild(major):
        return [] if op in (">=", "<=") else None
    if op in ("<=", ">") and (_is_wild(minor) or _is_wild(patch)):
        # "<=1.2" means "<1.3.0" and ">1.2" means ">=1.3.0"
        upper = _x_range(text)[-1][1:]
        return [f"<{upper}"] if op == "<=" else [f">={upper}"]
    filled = ".".join("0" if _is_wild(p) else p for p in (major, minor, patch)) + pre
    return [f"{op}{filled}"]


def _convert_simple(term: str) -> Optional[List[str]]:
    term = term.strip()
    if term in ("", "*", "x", "X"):
        return []
    if term.startswith("^"):
        return _caret(term[1:])
    if term.startswith("~"):
        return _tilde(term[1:].lstrip(">"))
    match = _COMPARATOR.match(term)
    if match and match.group(1) and match.group(1) != "=":
        return _comparator(match.group(1), match.group(2))
    return _x_range(term.lstrip("="))


def _convert_alternative(text: str) -> Optional[SpecifierSet]:
    text = text.strip()
    hyphen = re.match(r"^(\S+)\s+-\s+(\S+)$", text)
    if hyphen:
        low = _comparator(">=", hyphen.group(1))
        high = _comparator("<=", hyphen.group(2))
        if low is None or high is None:
            return None
        clauses = low + high
    else:
        # ">= 1.2.3 < 2" -> [">=1.2.3", "<2"]
        text = re.sub(r"(>=|<=|>|<|=|\^|~)\s+", r"\1", text)
        clauses = []
        for term in text.split():
            converted = _convert_simple(term)
            if converted is None:
                return None
            clauses.extend(converted)
    try:
        return SpecifierSet(",".join(clauses))
    except InvalidSpecifier:
        return None


def npm_range_to_specifiers(npm_range: str) -> Optional[List[SpecifierSet]]:
    """Convert an npm range to a list of alternative SpecifierSets.

    Returns None when the text is not a range (e.g. a dist-tag name).
    """
    alternatives = []
    for alternative in npm_range.split("||"):
        converted = _convert_alternative(alternative)
        if converted is None:
            return None
        alternatives.append(converted)
    return alternatives


def satisfies(version: str, npm_range: str) -> bool:
    parsed = parse_version(version)
    specifiers = npm_range_to_specifiers(npm_range)
    if parsed is None or specifiers is None:
        return False
    return any(spec.contains(parsed) for spec in specifiers)


def pick_manifest(
    packument: Mapping[str, Any],
    wanted: str,
    default_tag: str = "latest",
) -> Any:
    """Return ``packument['versions'][v]`` for the best ``v`` matching ``wanted``.

    ``wanted`` may be a dist-tag, an exact version or an npm range. Ranges
    pick the highest satisfying version.

    Raises:
        NoMatchingVersionError: If nothing matches
    """
    versions = packument.get("versions") or {}
    dist_tags = packument.get("dist-tags") or {}
    name = packument.get("name") or "<unknown>"
    wanted = (wanted or "").strip() or default_tag

    if wanted in dist_tags and dist_tags[wanted] in versions:
        return versions[dist_tags[wanted]]

    exact = parse_version(wanted) if _FULL_VERSION.match(wanted) else None
    if exact is not None:
        for v in versions:
            if parse_version(v) == exact:
                return versions[v]

    specifiers = npm_range_to_specifiers(wanted)
    if specifiers is None:
        raise NoMatchingVersionError(f"No matching version for {name}@{wanted}: not a tag or range")

    candidates = []
    for v in versions:
        parsed = parse_version(v)
        if parsed is None:
            continue
        if any(spec.contains(parsed) for spec in specifiers):
            candidates.append((parsed, v))

    if not candidates:
        raise NoMatchingVersionError(
            f"No matching version for {name}@{wanted} among {len(versions)} versions"
        )
    candidates.sort()
    chosen = candidates[-1][1]
    logger.debug(f"Picked {name}@{chosen} for {wanted}")
    return versions[chosen]
