"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used in logs and reports."""

    PARSE = "E_PARSE"
    CONFIG = "E_CONFIG"
    RESOLVE = "E_RESOLVE"
    UNKNOWN_SOURCE = "E_UNKNOWN_SOURCE"
    NO_RELEASE = "E_NO_RELEASE"
    BRANCH_NOT_FOUND = "E_BRANCH_NOT_FOUND"
    FETCH = "E_FETCH"
    PAYLOAD_TOO_LARGE = "E_PAYLOAD_TOO_LARGE"
    INSTALL = "E_INSTALL"
    LAUNCH = "E_LAUNCH"


class FilterSyncError(Exception):
    """Base error class that carries code, optional hint, and context.

    ``transient`` marks failures worth retrying (rate limits, timeouts, 5xx).
    Everything else is permanent and is reported without a second attempt.
    """

    code: str
    hint: str | None
    context: Mapping[str, str]
    transient: bool

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})
        self.transient = transient

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
            "transient": self.transient,
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ParseError(FilterSyncError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PARSE, hint=hint, context=context)


class ConfigError(FilterSyncError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class ResolveError(FilterSyncError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        transient: bool = False,
        code: ErrorCode = ErrorCode.RESOLVE,
    ) -> None:
        super().__init__(message, code=code, hint=hint, context=context, transient=transient)


class UnknownSource(ResolveError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, hint=hint, context=context, code=ErrorCode.UNKNOWN_SOURCE)


class NoReleaseFound(ResolveError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, hint=hint, context=context, code=ErrorCode.NO_RELEASE)


class BranchNotFound(ResolveError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, hint=hint, context=context, code=ErrorCode.BRANCH_NOT_FOUND)


class FetchError(FilterSyncError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
        transient: bool = False,
        code: ErrorCode = ErrorCode.FETCH,
    ) -> None:
        super().__init__(message, code=code, hint=hint, context=context, transient=transient)


class PayloadTooLarge(FetchError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, hint=hint, context=context, code=ErrorCode.PAYLOAD_TOO_LARGE)


class InstallError(FilterSyncError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INSTALL, hint=hint, context=context)


class LaunchFailed(FilterSyncError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LAUNCH, hint=hint, context=context)


__all__ = [
    "BranchNotFound",
    "ConfigError",
    "ErrorCode",
    "FetchError",
    "FilterSyncError",
    "InstallError",
    "LaunchFailed",
    "NoReleaseFound",
    "ParseError",
    "PayloadTooLarge",
    "ResolveError",
    "UnknownSource",
]
