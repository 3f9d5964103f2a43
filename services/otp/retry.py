"""Failure classification for the verifier and challenge calls"""

from enum import Enum

import httpx

from .errors import (
    ConfigurationError,
    ConflictError,
    ProviderError,
    TransientError,
    VerifierExpired,
)


CONFLICT_MARKERS = ("already been rendered", "already rendered")

FATAL_CODES = {
    "auth/invalid-api-key",
    "auth/configuration-not-found",
    "supabase/missing-config",
}


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    CONFLICT = "conflict"
    FATAL = "fatal"


USER_MESSAGES = {
    FailureKind.CONFLICT: "Phone verification is in an inconsistent state. Please refresh the page and try again.",
    FailureKind.TRANSIENT: "Verification expired or the network failed. Please try again.",
    FailureKind.FATAL: "Phone verification is not configured. Please contact support.",
}


class RetryPolicy:
    """Decides whether a failure needs teardown, a reset, or only a message"""

    def classify(self, error: BaseException) -> FailureKind:
        if isinstance(error, ConflictError):
            return FailureKind.CONFLICT
        if isinstance(error, ConfigurationError):
            return FailureKind.FATAL
        if isinstance(error, (TransientError, VerifierExpired, httpx.TransportError)):
            return FailureKind.TRANSIENT

        message = str(error).lower()
        if any(marker in message for marker in CONFLICT_MARKERS):
            return FailureKind.CONFLICT

        if isinstance(error, ProviderError):
            if error.network:
                return FailureKind.TRANSIENT
            if error.code in FATAL_CODES:
                return FailureKind.FATAL

        return FailureKind.TRANSIENT

    def is_retryable(self, kind: FailureKind) -> bool:
        return kind is FailureKind.TRANSIENT

    def user_message(self, kind: FailureKind) -> str:
        return USER_MESSAGES[kind]
