"""Derive Composer package versions from git refs.

Follows Composer's ``VersionParser``/``VcsRepository`` rules:

* tags are literal release versions: ``v1.2`` is published as ``v1.2``
  with normalized form ``1.2.0.0``;
* numeric branches are development lines: ``1.x`` becomes ``1.x-dev`` /
  ``1.9999999.9999999.9999999-dev``;
* other branches become ``dev-<branch>``.

Everything here is pure so it can be checked against a name → outcome table.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from cloudsmith_sync.engines.git.refs import RefKind

_MODIFIER = r"[._-]?(?:(stable|beta|b|RC|alpha|a|patch|pl|p)((?:[.-]?\d+)*)?)?([.-]?dev)?"

_CLASSICAL_RE = re.compile(
    r"^v?(\d{1,5})(\.\d+)?(\.\d+)?(\.\d+)?" + _MODIFIER + "$", re.IGNORECASE
)
_DATETIME_RE = re.compile(
    r"^v?(\d{4}(?:[.:-]?\d{2}){1,6}(?:[.:-]?\d{1,3}){0,2})" + _MODIFIER + "$",
    re.IGNORECASE,
)
_BUILD_METADATA_RE = re.compile(r"^([^,\s+]+)\+\S+$")

_NUMERIC_BRANCH_RE = re.compile(
    r"^v?(\d+)(\.(?:\d+|[xX*]))?(\.(?:\d+|[xX*]))?(\.(?:\d+|[xX*]))?$"
)
_BRANCH_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._/+-]*$")
_DEV_SUFFIX_RE = re.compile(r"[.-]?dev$", re.IGNORECASE)
_NINES_RE = re.compile(r"(\.9{7})+")

_STABILITY_ALIASES = {
    "a": "alpha",
    "b": "beta",
    "p": "patch",
    "pl": "patch",
    "rc": "RC",
}


@dataclass(frozen=True)
class PackageVersion:
    raw: str
    normalized: str


@dataclass(frozen=True)
class NotPublishable:
    """The ref does not map to a Composer version; not an error."""

    reason: str

    def __str__(self) -> str:
        return self.reason


def derive_version(ref_name: str, kind: RefKind) -> PackageVersion | NotPublishable:
    """Map a short ref name, as produced by ``classify_ref``, to a publishable version."""
    if kind is RefKind.TAG:
        return _tag_version(ref_name)
    return _branch_version(ref_name)


def _tag_version(tag: str) -> PackageVersion | NotPublishable:
    normalized = normalize_version(tag)
    if normalized is None:
        return NotPublishable(f"invalid version {tag}")
    # Tag packages never carry a -dev flag.
    return PackageVersion(
        raw=_DEV_SUFFIX_RE.sub("", tag.strip()),
        normalized=_DEV_SUFFIX_RE.sub("", normalized),
    )


def _branch_version(branch: str) -> PackageVersion | NotPublishable:
    branch = branch.strip()
    normalized = normalize_branch(branch)
    if normalized is None:
        return NotPublishable(f"unsupported branch name {branch}")
    if normalized.startswith("dev-"):
        return PackageVersion(raw=normalized, normalized=normalized)
    prefix = "v" if branch.startswith("v") else ""
    return PackageVersion(raw=prefix + _NINES_RE.sub(".x", normalized), normalized=normalized)


def normalize_version(version: str) -> str | None:
    """Normalize a release version string, or ``None`` if it is not one.

    >>> normalize_version("v1.2")
    '1.2.0.0'
    >>> normalize_version("2.0.0-RC1")
    '2.0.0.0-RC1'
    """
    version = version.strip()
    m = _BUILD_METADATA_RE.match(version)
    if m:
        version = m.group(1)

    m = _CLASSICAL_RE.match(version)
    if m:
        normalized = m.group(1) + "".join(part or ".0" for part in m.group(2, 3, 4))
        index = 5
    else:
        m = _DATETIME_RE.match(version)
        if not m:
            return None
        normalized = re.sub(r"\D", ".", m.group(1))
        index = 2

    stability, number, dev = m.group(index, index + 1, index + 2)
    if stability:
        if stability.lower() == "stable":
            return normalized
        normalized += "-" + _expand_stability(stability) + (number or "").lstrip(".-")
    if dev:
        normalized += "-dev"
    return normalized


def normalize_branch(name: str) -> str | None:
    """Normalize a branch name to a dev version, or ``None`` if unsupported.

    >>> normalize_branch("1.x")
    '1.9999999.9999999.9999999-dev'
    >>> normalize_branch("main")
    'dev-main'
    """
    m = _NUMERIC_BRANCH_RE.match(name)
    if m:
        parts = [p.replace("*", "x").replace("X", "x") if p else ".x" for p in m.groups()]
        return "".join(parts).replace("x", "9999999") + "-dev"

    if not _is_valid_branch_name(name):
        return None
    return f"dev-{name}"


def _is_valid_branch_name(name: str) -> bool:
    return (
        bool(_BRANCH_NAME_RE.match(name))
        and ".." not in name
        and "//" not in name
        and not name.endswith((".", "/", ".lock"))
    )


def _expand_stability(stability: str) -> str:
    stability = stability.lower()
    return _STABILITY_ALIASES.get(stability, stability)
