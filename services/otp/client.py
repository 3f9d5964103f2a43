"""Send, verify and resend one-time codes against the identity providers"""

import logging
import re
from typing import Dict, Optional

from .errors import (
    ChallengeSendFailed,
    ConfigurationError,
    InvalidCodeFormat,
    ProviderError,
    TransientError,
    VerificationError,
    VerificationFailed,
    VerifierNotReady,
)
from .lifecycle import VerifierLifecycleManager
from .models import (
    CODE_LENGTH,
    ChallengePurpose,
    ChallengeSession,
    Channel,
    VerificationResult,
    VerifierHandle,
)
from .providers import EmailIdentityProvider, PhoneIdentityProvider
from .retry import FailureKind, RetryPolicy

logger = logging.getLogger(__name__)

CODE_PATTERN = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")
MIN_PHONE_LENGTH = 10

# Purpose -> provider challenge type for email codes
EMAIL_CHALLENGE_TYPES = {
    ChallengePurpose.SIGNUP: "signup",
    ChallengePurpose.SIGNIN: "email",
    ChallengePurpose.RECOVERY: "recovery",
}
PHONE_CHALLENGE_TYPE = "sms"

SEND_ERROR_MESSAGES = {
    "auth/invalid-phone-number": "Invalid phone number format. Please check and try again.",
    "auth/too-many-requests": "Too many attempts. Please wait a few minutes before trying again.",
    "auth/unauthorized-domain": "This domain is not authorized for authentication. Please contact support.",
    "auth/captcha-check-failed": "reCAPTCHA verification failed. Please try again.",
    "auth/invalid-app-credential": "Human verification was not accepted. Please refresh and try again.",
}


def normalize_phone_number(country_code: str, phone_number: str) -> str:
    """Join a country code and a local number into +<digits> form"""
    if not phone_number:
        raise ValueError("Phone number is required")
    clean_phone = re.sub(r"\D", "", phone_number)
    clean_country_code = country_code if country_code.startswith("+") else f"+{country_code}"
    return clean_country_code + clean_phone


def detect_channel(identifier: str) -> Channel:
    return Channel.EMAIL if "@" in identifier else Channel.PHONE


class ChallengeClient:
    """
    Drives the user-facing code actions.

    Phone challenges need a live verifier handle unless verification bypass is
    on; email challenges never do. No call retries on its own: every attempt
    ends in exactly one result or one error.
    """

    def __init__(
        self,
        phone_provider: PhoneIdentityProvider,
        email_provider: EmailIdentityProvider,
        lifecycle: Optional[VerifierLifecycleManager] = None,
        bypass_verification: bool = False,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.phone_provider = phone_provider
        self.email_provider = email_provider
        self.lifecycle = lifecycle
        self.bypass_verification = bypass_verification
        self.retry_policy = retry_policy or RetryPolicy()
        self._sessions: Dict[str, ChallengeSession] = {}

    def pending(self, identifier: str) -> Optional[ChallengeSession]:
        return self._sessions.get(identifier)

    def abandon(self, identifier: str) -> bool:
        """Drop the pending session for an identifier"""
        return self._sessions.pop(identifier, None) is not None

    async def send_code(
        self,
        identifier: str,
        purpose: ChallengePurpose,
        handle: Optional[VerifierHandle] = None,
    ) -> ChallengeSession:
        return await self._send(identifier, ChallengePurpose(purpose), handle, resend=False)

    async def resend_code(
        self,
        identifier: str,
        purpose: ChallengePurpose,
        handle: Optional[VerifierHandle] = None,
    ) -> None:
        await self._send(identifier, ChallengePurpose(purpose), handle, resend=True)

    async def _send(
        self,
        identifier: str,
        purpose: ChallengePurpose,
        handle: Optional[VerifierHandle],
        resend: bool,
    ) -> ChallengeSession:
        channel = detect_channel(identifier)

        try:
            if channel is Channel.EMAIL:
                await self.email_provider.send_code(identifier, purpose)
            else:
                token = self._phone_preconditions(identifier, purpose, handle)
                await self.phone_provider.send_code(identifier, purpose, token)
        except VerificationError:
            raise
        except Exception as e:
            raise self._send_failure(e, channel) from e

        session = ChallengeSession(
            identifier=identifier,
            purpose=purpose,
            channel=channel,
            message=self._sent_message(channel, purpose, resend),
        )
        # A newer code supersedes the pending one
        self._sessions[identifier] = session
        logger.info(f"{'Resent' if resend else 'Sent'} {purpose.value} code via {channel.value} to {identifier}")
        return session

    def _phone_preconditions(
        self,
        identifier: str,
        purpose: ChallengePurpose,
        handle: Optional[VerifierHandle],
    ) -> Optional[str]:
        if purpose is ChallengePurpose.RECOVERY:
            raise ChallengeSendFailed("Password recovery is only available by email")
        if len(identifier) < MIN_PHONE_LENGTH:
            raise ChallengeSendFailed("Please enter a valid phone number")
        if self.bypass_verification:
            return None
        if handle is None or not handle.active or not handle.token:
            raise VerifierNotReady("Phone verification is not ready. Please complete the verification challenge.")
        return handle.token

    def _send_failure(self, error: Exception, channel: Channel) -> VerificationError:
        kind = self.retry_policy.classify(error)
        logger.error(f"Code send failed ({kind.value}): {error}")

        if channel is Channel.PHONE and self.lifecycle:
            if kind is FailureKind.CONFLICT:
                self.lifecycle.cleanup()
            elif kind is FailureKind.TRANSIENT:
                self.lifecycle.invalidate()

        if kind is FailureKind.FATAL:
            return ConfigurationError(self.retry_policy.user_message(kind))

        code = getattr(error, "code", None)
        reason = SEND_ERROR_MESSAGES.get(code) or str(error) or "Failed to send code. Please try again."
        return ChallengeSendFailed(reason, retryable=self.retry_policy.is_retryable(kind))

    def _sent_message(self, channel: Channel, purpose: ChallengePurpose, resend: bool) -> str:
        if resend:
            return "Code Resent"
        if channel is Channel.EMAIL and purpose is ChallengePurpose.RECOVERY:
            return "Reset Link Sent"
        return "OTP sent!"

    async def verify_code(
        self,
        identifier: str,
        purpose: ChallengePurpose,
        code: str,
    ) -> VerificationResult:
        if not isinstance(code, str) or not CODE_PATTERN.fullmatch(code):
            raise InvalidCodeFormat(f"Please enter a {CODE_LENGTH}-digit code.")

        purpose = ChallengePurpose(purpose)
        channel = detect_channel(identifier)
        if channel is Channel.PHONE and purpose is ChallengePurpose.RECOVERY:
            raise VerificationFailed("Password recovery is only available by email")

        try:
            if channel is Channel.EMAIL:
                user = await self.email_provider.confirm_code(
                    identifier, code, EMAIL_CHALLENGE_TYPES[purpose]
                )
            else:
                user = await self.phone_provider.confirm_code(identifier, code, PHONE_CHALLENGE_TYPE)
        except VerificationError:
            raise
        except ProviderError as e:
            if e.rejected:
                raise VerificationFailed(e.message or "Invalid verification code.") from e
            raise self._verify_failure(e) from e
        except Exception as e:
            raise self._verify_failure(e) from e

        self._sessions.pop(identifier, None)
        if channel is Channel.PHONE and self.lifecycle:
            self.lifecycle.cleanup()

        logger.info(f"{purpose.value} code verified for {identifier}")
        return VerificationResult(
            verified=True,
            identifier=identifier,
            purpose=purpose,
            user_id=user.get("uid"),
            message=self._verified_message(channel, purpose),
        )

    def _verify_failure(self, error: Exception) -> VerificationError:
        kind = self.retry_policy.classify(error)
        logger.error(f"Code verification failed ({kind.value}): {error}")
        if kind is FailureKind.FATAL:
            return ConfigurationError(self.retry_policy.user_message(kind))
        return TransientError(f"Could not verify the code: {error}")

    def _verified_message(self, channel: Channel, purpose: ChallengePurpose) -> str:
        if channel is Channel.PHONE:
            return "Phone number verified and signed in successfully!"
        if purpose is ChallengePurpose.RECOVERY:
            return "Password reset successful."
        return "Email verified successfully."
