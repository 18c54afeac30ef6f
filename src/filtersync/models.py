"""Core typed dataclasses for source descriptors, resolved refs and sync results."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Literal

from filtersync.errors import FilterSyncError, ParseError

SourceKind = Literal["builtin", "github"]
ResolveMode = Literal["release", "branch"]
OutcomeKind = Literal["fresh", "cached", "failed"]


@dataclass(frozen=True, slots=True)
class SourceDescriptor:
    """One requested filter origin.

    ``builtin`` descriptors carry only ``name`` (and optionally ``branch``) and
    are expanded to ``github`` descriptors before resolution. A missing branch
    means "latest release", a present one means "tip of that branch".
    """

    kind: SourceKind
    name: str | None = None
    owner: str | None = None
    repo: str | None = None
    branch: str | None = None
    token: str = ""

    def __post_init__(self) -> None:
        if self.kind == "builtin" and not self.name:
            raise ParseError("Builtin source requires a name.", context={"token": self.token})
        if self.kind == "github" and (not self.owner or not self.repo):
            raise ParseError(
                "GitHub source requires both owner and repo.",
                hint="Use github:<owner>/<repo> or github:<owner>/<repo>/<branch>.",
                context={"token": self.token},
            )
        if self.branch is not None and not self.branch:
            raise ParseError("Branch segment must not be empty.", context={"token": self.token})

    @classmethod
    def builtin(cls, name: str, *, branch: str | None = None, token: str = "") -> SourceDescriptor:
        return cls(kind="builtin", name=name, branch=branch, token=token or name)

    @classmethod
    def github(
        cls,
        owner: str,
        repo: str,
        *,
        branch: str | None = None,
        token: str = "",
    ) -> SourceDescriptor:
        return cls(kind="github", owner=owner, repo=repo, branch=branch, token=token)

    @property
    def key(self) -> str:
        if self.kind == "builtin":
            base = f"builtin:{self.name}"
        else:
            base = f"github:{self.owner}/{self.repo}"
        return f"{base}/{self.branch}" if self.branch else base

    @property
    def mode(self) -> ResolveMode:
        return "branch" if self.branch else "release"

    @property
    def display(self) -> str:
        return self.token or self.key


@dataclass(frozen=True, slots=True)
class ResolvedReference:
    descriptor: SourceDescriptor
    version_id: str
    content_url: str
    notes: str | None = None

    @property
    def key(self) -> str:
        return self.descriptor.key


@dataclass(frozen=True, slots=True)
class FetchOutcome:
    kind: OutcomeKind
    files: Mapping[str, bytes] = field(default_factory=dict)
    error: FilterSyncError | None = None

    @classmethod
    def fresh(cls, files: Mapping[str, bytes]) -> FetchOutcome:
        return cls(kind="fresh", files=dict(files))

    @classmethod
    def cached(cls) -> FetchOutcome:
        return cls(kind="cached")

    @classmethod
    def failed(cls, error: FilterSyncError) -> FetchOutcome:
        return cls(kind="failed", error=error)


class SourceStatus(StrEnum):
    SUCCESS = "success"
    SOFT_FAILURE = "soft_failure"
    HARD_FAILURE = "hard_failure"


@dataclass(frozen=True, slots=True)
class SourceResult:
    descriptor: SourceDescriptor
    status: SourceStatus
    outcome: OutcomeKind
    version_id: str | None = None
    files: tuple[str, ...] = ()
    error: FilterSyncError | None = None
    notes: str | None = None


@dataclass(slots=True)
class SyncReport:
    results: list[SourceResult] = field(default_factory=list)

    def with_status(self, status: SourceStatus) -> list[SourceResult]:
        return [result for result in self.results if result.status == status]

    @property
    def hard_failures(self) -> list[SourceResult]:
        return self.with_status(SourceStatus.HARD_FAILURE)

    @property
    def soft_failures(self) -> list[SourceResult]:
        return self.with_status(SourceStatus.SOFT_FAILURE)

    @property
    def fresh(self) -> list[SourceResult]:
        return [result for result in self.results if result.outcome == "fresh"]

    @property
    def ok(self) -> bool:
        return all(result.status == SourceStatus.SUCCESS for result in self.results)


__all__ = [
    "FetchOutcome",
    "OutcomeKind",
    "ResolveMode",
    "ResolvedReference",
    "SourceDescriptor",
    "SourceKind",
    "SourceResult",
    "SourceStatus",
    "SyncReport",
]
