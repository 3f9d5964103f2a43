from fastapi import HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from services.otp import (
    ChallengeClient,
    ChallengeSendFailed,
    ConfigurationError,
    ConflictError,
    InvalidCodeFormat,
    TransientError,
    VerificationError,
    VerificationFailed,
    VerifierLifecycleManager,
    VerifierNotReady,
)

# Rate limiter - uses client IP address for identification
limiter = Limiter(key_func=get_remote_address)

ERROR_STATUS = {
    VerifierNotReady: status.HTTP_409_CONFLICT,
    ConflictError: status.HTTP_409_CONFLICT,
    TransientError: status.HTTP_503_SERVICE_UNAVAILABLE,
    ConfigurationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    InvalidCodeFormat: 422,
    VerificationFailed: status.HTTP_400_BAD_REQUEST,
    ChallengeSendFailed: status.HTTP_502_BAD_GATEWAY,
}


def get_lifecycle(request: Request) -> VerifierLifecycleManager:
    """Process-wide verifier lifecycle manager created at startup"""
    return request.app.state.lifecycle


def get_challenge_client(request: Request) -> ChallengeClient:
    return request.app.state.challenge_client


def to_http_error(error: VerificationError) -> HTTPException:
    """Map a verification failure onto a single HTTP error"""
    status_code = ERROR_STATUS.get(type(error), status.HTTP_400_BAD_REQUEST)
    return HTTPException(
        status_code=status_code,
        detail={
            "error": type(error).__name__,
            "message": error.message,
            "retryable": error.retryable,
        },
    )
