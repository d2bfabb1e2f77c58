"""Source variant models and the data-driven classification table."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class VariantKind(str, Enum):
    """Which upstream source family a revision is built from."""

    PERFORMANCE_FORK = "performance_fork"
    DOWNSTREAM_FORK = "downstream_fork"
    UPSTREAM = "upstream"


class MatchMode(str, Enum):
    """How a classification rule tests a revision string."""

    SUFFIX = "suffix"
    PREFIX = "prefix"
    DEFAULT = "default"  # matches everything; must be the last rule


class SourceVariant(BaseModel):
    """An upstream repository and the single local working copy built from it."""

    model_config = ConfigDict(frozen=True)

    name: str  # operator-facing name, e.g. "jito"
    kind: VariantKind
    repository_url: str
    working_copy: Path


class ClassificationRule(BaseModel):
    """One row of the classification table. Rules are tried in order."""

    model_config = ConfigDict(frozen=True)

    kind: VariantKind
    match: MatchMode
    token: str = ""
    requires_confirmation: bool = False

    def matches(self, revision: str) -> bool:
        if self.match == MatchMode.SUFFIX:
            return revision.endswith(self.token)
        if self.match == MatchMode.PREFIX:
            return revision.startswith(self.token)
        return True


class Classification(BaseModel):
    """Result of classifying a revision: exactly one kind, plus whether to ask."""

    model_config = ConfigDict(frozen=True)

    revision: str
    kind: VariantKind
    requires_confirmation: bool
    rule: ClassificationRule


DEFAULT_CLASSIFICATION_RULES: list[ClassificationRule] = [
    ClassificationRule(
        kind=VariantKind.PERFORMANCE_FORK,
        match=MatchMode.SUFFIX,
        token="-jito",
    ),
    ClassificationRule(
        kind=VariantKind.DOWNSTREAM_FORK,
        match=MatchMode.PREFIX,
        token="x",
        requires_confirmation=True,
    ),
    ClassificationRule(
        kind=VariantKind.UPSTREAM,
        match=MatchMode.DEFAULT,
        requires_confirmation=True,
    ),
]


def default_variants(home: Path | None = None) -> list[SourceVariant]:
    """The stock variant table, with working copies under ``~/data``."""
    data = (home or Path.home()) / "data"
    return [
        SourceVariant(
            name="jito",
            kind=VariantKind.PERFORMANCE_FORK,
            repository_url="https://github.com/jito-foundation/jito-solana.git",
            working_copy=data / "jito-solana",
        ),
        SourceVariant(
            name="xandeum",
            kind=VariantKind.DOWNSTREAM_FORK,
            repository_url="https://github.com/Xandeum/xandeum-agave.git",
            working_copy=data / "xandeum-agave",
        ),
        SourceVariant(
            name="agave",
            kind=VariantKind.UPSTREAM,
            repository_url="https://github.com/anza-xyz/agave.git",
            working_copy=data / "agave",
        ),
    ]
