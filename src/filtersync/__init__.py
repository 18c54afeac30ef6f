"""Public package entrypoint for the filter synchronizer."""

from .errors import (
    BranchNotFound,
    ConfigError,
    FetchError,
    FilterSyncError,
    InstallError,
    LaunchFailed,
    NoReleaseFound,
    ParseError,
    PayloadTooLarge,
    ResolveError,
    UnknownSource,
)
from .models import (
    FetchOutcome,
    ResolvedReference,
    SourceDescriptor,
    SourceResult,
    SourceStatus,
    SyncReport,
)
from .sources import BUILTIN_SOURCES, parse_source, parse_sources

__all__ = [
    "BUILTIN_SOURCES",
    "BranchNotFound",
    "ConfigError",
    "FetchError",
    "FetchOutcome",
    "FilterSyncError",
    "InstallError",
    "LaunchFailed",
    "NoReleaseFound",
    "ParseError",
    "PayloadTooLarge",
    "ResolveError",
    "ResolvedReference",
    "SourceDescriptor",
    "SourceResult",
    "SourceStatus",
    "SyncReport",
    "UnknownSource",
    "parse_source",
    "parse_sources",
]
