"""Version constraint resolution.

Maps composer-style version constraints ("^1.0", "1.2.*", "dev-master",
"1.2.x-dev", ">=1.0 <2.0 || ^3.0") onto the concrete refs of a package.
Range constraints are translated into PEP 440 specifier sets and matched
with packaging.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from .deps import DEV_PREFIX, normalize_constraint
from .errors import ConflictingConstraints, UnresolvableConstraint
from .models import RefInventory
from .versions import parse_version

DEV_SUFFIX = "-dev"
WILDCARD = "*"

_OR_SPLIT = re.compile(r"\s*\|\|?\s*")
_HYPHEN_RANGE = re.compile(r"^(\S+)\s+-\s+(\S+)$")
_AND_SPLIT = re.compile(r"[\s,]+")
# Operators may be separated from their version by spaces (">= 1.0")
_LOOSE_OPERATOR = re.compile(r"(>=|<=|!=|==|<>|>|<|=|\^|~)\s+")
_COMPARISON_OPERATORS = (">=", "<=", "!=", "<>", "==", ">", "<", "=")


def _strip_version(raw: str) -> str:
    """Drop a leading "v" and any "@stability" flag from a version."""
    raw = raw.split("@", 1)[0].strip()
    if raw[:1] in ("v", "V") and raw[1:2].isdigit():
        raw = raw[1:]
    return raw


def _caret(raw: str) -> list[str]:
    """^1.2.3 → >=1.2.3,<2.0.0; ^0.3 → >=0.3,<0.4.0; ^0.0.3 → <0.0.4."""
    version = parse_version(raw)
    if version.major > 0 or "." not in raw:
        upper = version.bump_major()
    elif version.minor > 0 or raw.count(".") < 2:
        upper = version.bump_minor()
    else:
        upper = version.bump_patch()
    return [f">={raw}", f"<{upper}"]


def _tilde(raw: str) -> list[str]:
    """~1.2 → >=1.2,<2.0.0; ~1.2.3 → >=1.2.3,<1.3.0."""
    version = parse_version(raw)
    if raw.count(".") >= 2:
        upper = version.bump_minor()
    else:
        upper = version.bump_major()
    return [f">={raw}", f"<{upper}"]


def _hyphen_upper(raw: str) -> str:
    """1.0 - 2.0 → <2.1.0; 1.0 - 2 → <3.0.0; 1.0 - 2.0.1 → <=2.0.1."""
    dots = raw.count(".")
    if dots >= 2:
        return f"<={raw}"
    version = parse_version(raw)
    upper = version.bump_minor() if dots == 1 else version.bump_major()
    return f"<{upper}"


def _term_specifiers(term: str) -> list[str]:
    """Translate a single composer constraint term into PEP 440 clauses."""
    term = term.strip()
    if term in ("", WILDCARD):
        return []
    if term.startswith("^"):
        return _caret(_strip_version(term[1:]))
    if term.startswith("~"):
        return _tilde(_strip_version(term[1:]))
    for op in _COMPARISON_OPERATORS:
        if term.startswith(op):
            version = _strip_version(term[len(op) :]).replace(".x", ".*")
            pep_op = {"=": "==", "<>": "!="}.get(op, op)
            return [f"{pep_op}{version}"]
    version = _strip_version(term)
    if version.endswith((".*", ".x", ".X")):
        return [f"=={version[:-2]}.*"]
    return [f"=={version}"]


def composer_specifiers(constraint: str) -> list[SpecifierSet]:
    """Translate a composer constraint into alternative specifier sets.

    Each "||" alternative becomes one SpecifierSet; a version satisfies the
    constraint if it is contained in any of them.

    Raises:
        ValueError: If the constraint cannot be expressed as a range.
    """
    alternatives: list[SpecifierSet] = []
    for alternative in _OR_SPLIT.split(constraint.strip()):
        clauses: list[str] = []
        hyphen = _HYPHEN_RANGE.match(alternative)
        if hyphen:
            low, high = hyphen.groups()
            clauses = [f">={_strip_version(low)}", _hyphen_upper(_strip_version(high))]
        else:
            joined = _LOOSE_OPERATOR.sub(r"\1", alternative)
            for term in _AND_SPLIT.split(joined):
                clauses.extend(_term_specifiers(term))
        try:
            alternatives.append(SpecifierSet(",".join(clauses)))
        except InvalidSpecifier as exc:
            raise ValueError(f"Unsupported version constraint {constraint!r}") from exc
    return alternatives


def satisfies(version: str, constraint: str) -> bool:
    """Check whether a version string is inside a composer range.

    Unparseable versions and constraints never satisfy anything.
    """
    try:
        alternatives = composer_specifiers(constraint)
        parsed = Version(version)
    except (ValueError, InvalidVersion):
        return False
    return any(spec.contains(parsed) for spec in alternatives)


def resolve_constraint(constraint: str, inventory: RefInventory, package: str) -> str:
    """Resolve a constraint to one concrete ref of a package.

    First match wins:
    1. The constraint is a branch name.
    2. "dev-<ref>" where <ref> exists.
    3. "<ref>-dev" where <ref> exists.
    4. "*" → the highest-precedence ref.
    5. A dotted wildcard ("1.2.*") → the highest ref starting with the
       literal prefix.
    6. A semver range → the highest versioned ref inside it.

    Raises:
        UnresolvableConstraint: If nothing matches.
    """
    constraint = constraint.strip()
    names = inventory.names

    if constraint in inventory.branches:
        return constraint

    if constraint.startswith(DEV_PREFIX):
        candidate = constraint[len(DEV_PREFIX) :]
        if inventory.has(candidate):
            return candidate

    if constraint.endswith(DEV_SUFFIX):
        candidate = constraint[: -len(DEV_SUFFIX)]
        if inventory.has(candidate):
            return candidate

    if constraint == WILDCARD:
        if names:
            return names[0]
        raise UnresolvableConstraint(package, constraint)

    if "." in constraint and WILDCARD in constraint:
        prefix = constraint.split(WILDCARD, 1)[0]
        for name in names:
            if name.startswith(prefix):
                return name

    for ref in inventory.versioned:
        if ref.version and satisfies(ref.version, constraint):
            return ref.name

    raise UnresolvableConstraint(package, constraint)


def collapse_constraints(package: str, constraints: Iterable[str]) -> str:
    """Reduce the constraints requested for one package to a single one.

    Wildcard-only entries are dropped and "dev-" aliases are compared in
    normalized form ("dev-master" equals "master"). If nothing but
    wildcards was requested the result is "*".

    Raises:
        ConflictingConstraints: If more than one distinct constraint remains.
        ValueError: If no constraint was requested at all.
    """
    requested = [c.strip() for c in constraints]
    if not requested:
        raise ValueError(f"{package} has no required versions")

    distinct: list[str] = []
    normalized: set[str] = set()
    for constraint in requested:
        if constraint == WILDCARD:
            continue
        key = normalize_constraint(constraint)
        if key not in normalized:
            normalized.add(key)
            distinct.append(constraint)

    if not distinct:
        return WILDCARD
    if len(distinct) > 1:
        raise ConflictingConstraints({package: distinct})
    return distinct[0]
