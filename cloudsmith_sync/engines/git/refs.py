"""Ref classification: branch vs. tag."""

from __future__ import annotations

import enum
from dataclasses import dataclass

BRANCH_PREFIX = "refs/heads/"
TAG_PREFIX = "refs/tags/"


class RefKind(str, enum.Enum):
    BRANCH = "branch"
    TAG = "tag"


@dataclass(frozen=True)
class ResolvedRef:
    kind: RefKind
    short_name: str
    commit: str

    @property
    def is_branch(self) -> bool:
        return self.kind is RefKind.BRANCH


def classify_ref(ref: str) -> tuple[RefKind, str]:
    """Return ``(kind, short_name)`` for a symbolic ref.

    A ref is a tag iff stripping ``refs/tags/`` changes it; anything else is
    a branch with ``refs/heads/`` stripped.
    """
    tag = ref.removeprefix(TAG_PREFIX)
    if tag != ref:
        return RefKind.TAG, tag
    return RefKind.BRANCH, ref.removeprefix(BRANCH_PREFIX)
