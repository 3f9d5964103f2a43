"""OTP Verification Service

Phone and email one-time-code verification. Phone codes sit behind a single
human-presence widget whose lifecycle is owned by VerifierLifecycleManager;
email codes go straight to the email provider.

Usage:
    from services.otp import (
        VerifierLifecycleManager,
        ChallengeClient,
        RetryPolicy,
    )

    handle = await lifecycle.get_or_create()
    lifecycle.submit_token(token)  # once the widget is solved
    await client.send_code("+911234567890", "signin", handle)
    result = await client.verify_code("+911234567890", "signin", "123456")
"""

from .client import (
    ChallengeClient,
    detect_channel,
    normalize_phone_number,
)

from .container import ContainerHost, Element

from .errors import (
    VerificationError,
    VerifierNotReady,
    ConflictError,
    TransientError,
    ConfigurationError,
    InvalidCodeFormat,
    VerificationFailed,
    ChallengeSendFailed,
    ProviderError,
)

from .firebase import FirebasePhoneProvider
from .lifecycle import VerifierLifecycleManager

from .models import (
    ChallengePurpose,
    ChallengeSession,
    Channel,
    LifecycleState,
    PresentationMode,
    VerificationResult,
    VerifierCallbacks,
    VerifierHandle,
    VerifierStatus,
)

from .providers import (
    EmailIdentityProvider,
    PhoneIdentityProvider,
    SimulatedPhoneProvider,
    TEST_PHONE_NUMBERS,
)

from .retry import FailureKind, RetryPolicy
from .supabase import SupabaseEmailProvider

__all__ = [
    # Core
    "VerifierLifecycleManager",
    "ChallengeClient",
    "RetryPolicy",
    "FailureKind",
    "normalize_phone_number",
    "detect_channel",
    # Hosts and providers
    "ContainerHost",
    "Element",
    "PhoneIdentityProvider",
    "EmailIdentityProvider",
    "SimulatedPhoneProvider",
    "FirebasePhoneProvider",
    "SupabaseEmailProvider",
    "TEST_PHONE_NUMBERS",
    # Errors
    "VerificationError",
    "VerifierNotReady",
    "ConflictError",
    "TransientError",
    "ConfigurationError",
    "InvalidCodeFormat",
    "VerificationFailed",
    "ChallengeSendFailed",
    "ProviderError",
    # Models
    "ChallengePurpose",
    "ChallengeSession",
    "Channel",
    "LifecycleState",
    "PresentationMode",
    "VerificationResult",
    "VerifierCallbacks",
    "VerifierHandle",
    "VerifierStatus",
]
