"""Tests for ChallengeClient send/verify/resend"""

import httpx
import pytest

from services.otp import (
    ChallengeClient,
    ChallengePurpose,
    ChallengeSendFailed,
    Channel,
    ConfigurationError,
    FirebasePhoneProvider,
    InvalidCodeFormat,
    ProviderError,
    TransientError,
    VerificationFailed,
    VerifierLifecycleManager,
    VerifierNotReady,
    normalize_phone_number,
)

PHONE = "+911234567890"
EMAIL = "member@example.com"


@pytest.mark.asyncio
async def test_phone_signin_round_trip(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")

    session = await challenge_client.send_code(PHONE, "signin", handle)
    assert session.channel == Channel.PHONE
    assert session.code_length == 6
    assert session.message == "OTP sent!"
    assert phone_provider.sent == [(PHONE, ChallengePurpose.SIGNIN, "captcha-token")]
    assert challenge_client.pending(PHONE) == session

    result = await challenge_client.verify_code(PHONE, "signin", "123456")

    assert result.verified
    assert result.user_id.startswith("simulated_")
    assert phone_provider.confirmed == [(PHONE, "123456", "sms")]
    assert challenge_client.pending(PHONE) is None
    # Flow finished, widget torn down
    assert not lifecycle.is_ready()


@pytest.mark.parametrize("code", ["12a45", "12345", "1234567", "", "12 456", "１２３４５６"])
@pytest.mark.asyncio
async def test_bad_code_never_reaches_provider(challenge_client, phone_provider, email_provider, code):
    with pytest.raises(InvalidCodeFormat):
        await challenge_client.verify_code(PHONE, "signin", code)
    with pytest.raises(InvalidCodeFormat):
        await challenge_client.verify_code(EMAIL, "recovery", code)

    assert phone_provider.confirmed == []
    assert email_provider.confirmed == []


@pytest.mark.asyncio
async def test_phone_send_requires_handle(challenge_client, phone_provider):
    with pytest.raises(VerifierNotReady):
        await challenge_client.send_code(PHONE, "signin")
    assert phone_provider.sent == []


@pytest.mark.asyncio
async def test_phone_send_rejects_stale_handle(challenge_client, lifecycle):
    handle = await lifecycle.get_or_create("c1")
    handle.verifier.expire()

    with pytest.raises(VerifierNotReady):
        await challenge_client.send_code(PHONE, "signin", handle)


@pytest.mark.asyncio
async def test_phone_send_rejects_unsolved_handle(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    assert handle.active and handle.token is None

    with pytest.raises(VerifierNotReady):
        await challenge_client.send_code(PHONE, "signin", handle)
    assert phone_provider.sent == []


@pytest.mark.asyncio
async def test_unsolved_handle_never_reaches_firebase(host, email_provider):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(400, json={"error": {"message": "MISSING_APP_CREDENTIAL"}})

    provider = FirebasePhoneProvider(
        "test-key", host, base_url="https://auth.test/v1", transport=httpx.MockTransport(handler)
    )
    lifecycle = VerifierLifecycleManager(provider, host, container_id="c1", cleanup_settle=0, dom_settle=0)
    client = ChallengeClient(provider, email_provider, lifecycle=lifecycle)
    handle = await lifecycle.get_or_create("c1")

    with pytest.raises(VerifierNotReady):
        await client.send_code(PHONE, "signin", handle)

    assert calls == []
    await provider.close()


@pytest.mark.asyncio
async def test_bypass_skips_handle(phone_provider, email_provider, lifecycle):
    client = ChallengeClient(phone_provider, email_provider, lifecycle=lifecycle, bypass_verification=True)

    await client.send_code(PHONE, "signin")

    assert phone_provider.sent == [(PHONE, ChallengePurpose.SIGNIN, None)]


@pytest.mark.asyncio
async def test_wrong_phone_code_fails_verification(challenge_client, lifecycle):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")
    await challenge_client.send_code(PHONE, "signin", handle)

    with pytest.raises(VerificationFailed) as exc_info:
        await challenge_client.verify_code(PHONE, "signin", "000000")

    assert exc_info.value.provider_message == "Invalid OTP code"
    assert challenge_client.pending(PHONE) is not None


@pytest.mark.asyncio
async def test_phone_recovery_not_supported(challenge_client, lifecycle):
    handle = await lifecycle.get_or_create("c1")
    with pytest.raises(ChallengeSendFailed):
        await challenge_client.send_code(PHONE, "recovery", handle)


@pytest.mark.asyncio
async def test_phone_recovery_code_not_verified(challenge_client, phone_provider):
    with pytest.raises(VerificationFailed):
        await challenge_client.verify_code(PHONE, "recovery", "123456")
    assert phone_provider.confirmed == []


@pytest.mark.asyncio
async def test_short_phone_number_rejected(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    with pytest.raises(ChallengeSendFailed) as exc_info:
        await challenge_client.send_code("+9112", "signin", handle)
    assert "valid phone number" in exc_info.value.reason
    assert phone_provider.sent == []


@pytest.mark.asyncio
async def test_transient_send_failure_invalidates_verifier(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")
    phone_provider.send_error = ProviderError("timeout", code="auth/network-request-failed", network=True)

    with pytest.raises(ChallengeSendFailed) as exc_info:
        await challenge_client.send_code(PHONE, "signin", handle)

    assert exc_info.value.retryable
    assert not lifecycle.is_ready()
    assert challenge_client.pending(PHONE) is None


@pytest.mark.asyncio
async def test_send_failure_maps_provider_code(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")
    phone_provider.send_error = ProviderError("TOO_MANY_ATTEMPTS_TRY_LATER", code="auth/too-many-requests")

    with pytest.raises(ChallengeSendFailed) as exc_info:
        await challenge_client.send_code(PHONE, "signin", handle)

    assert exc_info.value.reason.startswith("Too many attempts")


@pytest.mark.asyncio
async def test_send_conflict_cleans_up(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")
    phone_provider.send_error = ProviderError("reCAPTCHA has already been rendered in this element")

    with pytest.raises(ChallengeSendFailed) as exc_info:
        await challenge_client.send_code(PHONE, "signin", handle)

    assert not exc_info.value.retryable
    assert lifecycle.handle is None
    assert lifecycle.state.initialized is False


@pytest.mark.asyncio
async def test_missing_configuration_is_fatal(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")
    phone_provider.send_error = ProviderError("no key", code="auth/invalid-api-key")

    with pytest.raises(ConfigurationError):
        await challenge_client.send_code(PHONE, "signin", handle)


@pytest.mark.asyncio
async def test_raw_network_errors_are_wrapped(challenge_client, lifecycle, phone_provider):
    handle = await lifecycle.get_or_create("c1")
    lifecycle.submit_token("captcha-token")
    phone_provider.send_error = httpx.ConnectError("connection refused")

    with pytest.raises(ChallengeSendFailed):
        await challenge_client.send_code(PHONE, "signin", handle)


@pytest.mark.asyncio
async def test_email_recovery_round_trip(challenge_client, email_provider, phone_provider):
    session = await challenge_client.send_code(EMAIL, "recovery")

    assert session.channel == Channel.EMAIL
    assert session.message == "Reset Link Sent"
    assert email_provider.sent == [(EMAIL, ChallengePurpose.RECOVERY)]
    assert phone_provider.sent == []

    result = await challenge_client.verify_code(EMAIL, "recovery", "424242")

    assert result.verified
    assert result.message == "Password reset successful."
    assert email_provider.confirmed == [(EMAIL, "424242", "recovery")]


@pytest.mark.parametrize(
    "purpose, challenge_type",
    [("signup", "signup"), ("signin", "email"), ("recovery", "recovery")],
)
@pytest.mark.asyncio
async def test_email_challenge_types(challenge_client, email_provider, purpose, challenge_type):
    await challenge_client.send_code(EMAIL, purpose)
    await challenge_client.verify_code(EMAIL, purpose, "424242")

    assert email_provider.confirmed[-1][2] == challenge_type


@pytest.mark.asyncio
async def test_email_rejection(challenge_client):
    await challenge_client.send_code(EMAIL, "signup")

    with pytest.raises(VerificationFailed) as exc_info:
        await challenge_client.verify_code(EMAIL, "signup", "111111")

    assert "expired or is invalid" in exc_info.value.provider_message


@pytest.mark.asyncio
async def test_verify_network_error_is_transient(challenge_client, email_provider):
    async def offline(identifier, code, challenge_type):
        raise ProviderError("unreachable", network=True)

    email_provider.confirm_code = offline

    with pytest.raises(TransientError):
        await challenge_client.verify_code(EMAIL, "signin", "424242")


@pytest.mark.asyncio
async def test_resend_supersedes_pending(challenge_client, email_provider):
    first = await challenge_client.send_code(EMAIL, "signin")
    result = await challenge_client.resend_code(EMAIL, "signin")

    assert result is None
    assert len(email_provider.sent) == 2
    pending = challenge_client.pending(EMAIL)
    assert pending is not first
    assert pending.message == "Code Resent"


@pytest.mark.asyncio
async def test_resend_has_same_preconditions(challenge_client):
    with pytest.raises(VerifierNotReady):
        await challenge_client.resend_code(PHONE, "signin")


@pytest.mark.asyncio
async def test_abandon(challenge_client):
    await challenge_client.send_code(EMAIL, "signin")

    assert challenge_client.abandon(EMAIL)
    assert not challenge_client.abandon(EMAIL)
    assert challenge_client.pending(EMAIL) is None


def test_normalize_phone_number():
    assert normalize_phone_number("91", "12345 67890") == "+911234567890"
    assert normalize_phone_number("+1", "(555) 123-4567") == "+15551234567"
    with pytest.raises(ValueError):
        normalize_phone_number("+91", "")
