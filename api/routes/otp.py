"""API endpoints for phone and email OTP verification"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from api.dependencies import get_challenge_client, get_lifecycle, limiter, to_http_error
from services.otp import (
    ChallengeClient,
    ChallengeSession,
    Channel,
    VerificationError,
    VerificationResult,
    VerifierLifecycleManager,
    VerifierNotReady,
    detect_channel,
    normalize_phone_number,
)
from services.otp.models import (
    SendCodeRequest,
    TokenSubmit,
    VerifierRequest,
    VerifierStatusResponse,
    VerifyCodeRequest,
)

router = APIRouter(prefix="/otp", tags=["otp"])


def _identifier(identifier: str, country_code: Optional[str]) -> str:
    identifier = identifier.strip()
    if not country_code or detect_channel(identifier) is Channel.EMAIL:
        return identifier
    try:
        return normalize_phone_number(country_code, identifier)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


def _verifier_status(lifecycle: VerifierLifecycleManager) -> VerifierStatusResponse:
    handle = lifecycle.handle
    return VerifierStatusResponse(
        ready=lifecycle.is_ready(),
        status=lifecycle.state.status,
        widget_id=handle.widget_id if handle else None,
        container_id=handle.container_id if handle else None,
        mode=handle.mode if handle else None,
    )


@router.get("/verifier", response_model=VerifierStatusResponse)
async def get_verifier_status(lifecycle: VerifierLifecycleManager = Depends(get_lifecycle)):
    """Whether a reusable verifier widget exists and no render is in flight"""
    return _verifier_status(lifecycle)


@router.post("/verifier", response_model=VerifierStatusResponse)
@limiter.limit("30/minute")
async def create_verifier(
    request: Request,
    body: VerifierRequest,
    lifecycle: VerifierLifecycleManager = Depends(get_lifecycle),
):
    """
    Create the verifier widget, or reuse the live one.

    Concurrent requests during a render all get the same widget or the same error.
    """
    try:
        await lifecycle.get_or_create(body.container_key, body.mode)
    except VerificationError as e:
        raise to_http_error(e)
    return _verifier_status(lifecycle)


@router.post("/verifier/refresh", response_model=VerifierStatusResponse)
@limiter.limit("10/minute")
async def refresh_verifier(
    request: Request,
    body: VerifierRequest,
    lifecycle: VerifierLifecycleManager = Depends(get_lifecycle),
):
    """Tear down and recreate the widget"""
    try:
        await lifecycle.force_refresh(body.container_key, body.mode)
    except VerificationError as e:
        raise to_http_error(e)
    return _verifier_status(lifecycle)


@router.delete("/verifier", response_model=VerifierStatusResponse)
async def cleanup_verifier(lifecycle: VerifierLifecycleManager = Depends(get_lifecycle)):
    lifecycle.cleanup()
    return _verifier_status(lifecycle)


@router.post("/verifier/token", response_model=VerifierStatusResponse)
@limiter.limit("30/minute")
async def submit_verifier_token(
    request: Request,
    body: TokenSubmit,
    lifecycle: VerifierLifecycleManager = Depends(get_lifecycle),
):
    """Deliver the token produced when the user solved the challenge"""
    try:
        lifecycle.submit_token(body.token)
    except VerificationError as e:
        raise to_http_error(e)
    return _verifier_status(lifecycle)


@router.post("/verifier/expired", response_model=VerifierStatusResponse)
async def expire_verifier(lifecycle: VerifierLifecycleManager = Depends(get_lifecycle)):
    """Report that the challenge expired in the browser"""
    try:
        lifecycle.notify_expired()
    except VerifierNotReady as e:
        raise to_http_error(e)
    return _verifier_status(lifecycle)


@router.post("/send", response_model=ChallengeSession)
@limiter.limit("5/minute")
async def send_code(
    request: Request,
    body: SendCodeRequest,
    lifecycle: VerifierLifecycleManager = Depends(get_lifecycle),
    client: ChallengeClient = Depends(get_challenge_client),
):
    """
    Send a 6-digit code.

    Phone codes need a solved verifier widget (see /otp/verifier); email codes do not.
    """
    identifier = _identifier(body.identifier, body.country_code)
    try:
        return await client.send_code(identifier, body.purpose, lifecycle.handle)
    except VerificationError as e:
        raise to_http_error(e)


@router.post("/resend", response_model=ChallengeSession)
@limiter.limit("5/minute")
async def resend_code(
    request: Request,
    body: SendCodeRequest,
    lifecycle: VerifierLifecycleManager = Depends(get_lifecycle),
    client: ChallengeClient = Depends(get_challenge_client),
):
    identifier = _identifier(body.identifier, body.country_code)
    try:
        await client.resend_code(identifier, body.purpose, lifecycle.handle)
    except VerificationError as e:
        raise to_http_error(e)
    return client.pending(identifier)


@router.post("/verify", response_model=VerificationResult)
@limiter.limit("10/minute")
async def verify_code(
    request: Request,
    body: VerifyCodeRequest,
    client: ChallengeClient = Depends(get_challenge_client),
):
    identifier = _identifier(body.identifier, body.country_code)
    try:
        return await client.verify_code(identifier, body.purpose, body.code)
    except VerificationError as e:
        raise to_http_error(e)


@router.delete("/session")
async def abandon_session(
    identifier: str,
    country_code: Optional[str] = None,
    client: ChallengeClient = Depends(get_challenge_client),
):
    """Drop the pending challenge for an identifier"""
    if not client.abandon(_identifier(identifier, country_code)):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No pending verification found"
        )
    return {"message": "Verification cancelled"}
