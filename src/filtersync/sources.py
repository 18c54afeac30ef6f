"""Source token grammar and the builtin source table."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import NamedTuple

from filtersync.errors import ParseError, UnknownSource
from filtersync.models import SourceDescriptor

_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")
_GITHUB_PREFIX = "github:"


class BuiltinSource(NamedTuple):
    owner: str
    repo: str
    default_branch: str | None = None


BUILTIN_SOURCES: Mapping[str, BuiltinSource] = MappingProxyType(
    {
        "neversink-lite": BuiltinSource("NeverSinkDev", "NeverSink-PoE2litefilter"),
        "cdrg": BuiltinSource("cdrg", "cdr-poe2filter"),
    }
)


def parse_source(token: str) -> SourceDescriptor:
    """Parse one command-line source token into a descriptor.

    Accepted forms are ``name``, ``name/branch``, ``github:owner/repo`` and
    ``github:owner/repo/branch``. Builtin names are not checked here.
    """
    if not token or token != token.strip():
        raise ParseError("Source token must be a non-empty string.", context={"token": token})

    if token.startswith(_GITHUB_PREFIX):
        segments = token[len(_GITHUB_PREFIX) :].split("/")
        _validate_segments(token, segments)
        if len(segments) == 2:
            return SourceDescriptor.github(segments[0], segments[1], token=token)
        if len(segments) == 3:
            return SourceDescriptor.github(
                segments[0], segments[1], branch=segments[2], token=token
            )
        raise ParseError(
            "GitHub source has the wrong number of segments.",
            hint="Use github:<owner>/<repo> or github:<owner>/<repo>/<branch>.",
            context={"token": token},
        )

    if ":" in token:
        raise ParseError(
            "Unsupported source kind.",
            hint="Only builtin names and github: sources are supported.",
            context={"token": token, "kind": token.split(":", 1)[0]},
        )

    segments = token.split("/")
    _validate_segments(token, segments)
    if len(segments) == 1:
        return SourceDescriptor.builtin(segments[0], token=token)
    if len(segments) == 2:
        return SourceDescriptor.builtin(segments[0], branch=segments[1], token=token)
    raise ParseError(
        "Builtin source has the wrong number of segments.",
        hint="Use <name> or <name>/<branch>.",
        context={"token": token},
    )


def parse_sources(tokens: Iterable[str]) -> list[SourceDescriptor]:
    return [parse_source(token) for token in tokens]


def expand_builtin(descriptor: SourceDescriptor) -> SourceDescriptor:
    """Rewrite a builtin descriptor into its explicit GitHub form."""
    if descriptor.kind == "github":
        return descriptor
    entry = BUILTIN_SOURCES.get(descriptor.name or "")
    if entry is None:
        raise UnknownSource(
            f"Unknown builtin source `{descriptor.name}`.",
            hint=f"Known sources: {', '.join(sorted(BUILTIN_SOURCES))}.",
            context={"token": descriptor.display},
        )
    return SourceDescriptor.github(
        entry.owner,
        entry.repo,
        branch=descriptor.branch or entry.default_branch,
        token=descriptor.token,
    )


def _validate_segments(token: str, segments: list[str]) -> None:
    for segment in segments:
        if not _SEGMENT_PATTERN.fullmatch(segment):
            raise ParseError(
                "Source token has an empty or invalid segment.",
                context={"token": token, "segment": segment},
            )


__all__ = [
    "BUILTIN_SOURCES",
    "BuiltinSource",
    "expand_builtin",
    "parse_source",
    "parse_sources",
]
