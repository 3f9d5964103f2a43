"""Exceptions for OTP verification.

Everything a caller can see derives from ``VerificationError``. Raw provider
failures are raised as ``ProviderError`` and translated before they leave the
package.
"""

from typing import Optional


class VerificationError(Exception):
    """Base class for caller-facing verification failures."""

    retryable: bool = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class VerifierNotReady(VerificationError):
    """A phone challenge needs a verifier handle and none is live."""


class ConflictError(VerificationError):
    """The provider reports a widget already rendered in the target container."""


class TransientError(VerificationError):
    """Expiry or network failure; the caller may retry."""

    retryable = True


class ConfigurationError(VerificationError):
    """Required provider configuration is missing."""


class InvalidCodeFormat(VerificationError):
    """Submitted code is not exactly 6 digits."""


class VerificationFailed(VerificationError):
    """The provider rejected the submitted code."""

    def __init__(self, provider_message: str):
        super().__init__(provider_message)
        self.provider_message = provider_message


class ChallengeSendFailed(VerificationError):
    """The provider could not deliver a code."""

    def __init__(self, reason: str, retryable: bool = False):
        super().__init__(reason)
        self.reason = reason
        self.retryable = retryable


class ProviderError(Exception):
    """Raw failure reported by an identity provider"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        network: bool = False,
        rejected: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.network = network
        self.rejected = rejected


class VerifierExpired(Exception):
    """Raised internally when the widget's expired callback fires"""
