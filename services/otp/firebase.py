"""Firebase phone authentication over the Identity Toolkit REST API"""

import logging
from typing import Dict, Optional

import httpx

from core.config import settings
from .container import ContainerHost
from .errors import ProviderError
from .models import ChallengePurpose
from .providers import PhoneIdentityProvider

logger = logging.getLogger(__name__)

# Identity Toolkit error messages -> client SDK error codes
ERROR_CODES = {
    "INVALID_PHONE_NUMBER": "auth/invalid-phone-number",
    "MISSING_PHONE_NUMBER": "auth/missing-phone-number",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "QUOTA_EXCEEDED": "auth/quota-exceeded",
    "CAPTCHA_CHECK_FAILED": "auth/captcha-check-failed",
    "INVALID_APP_CREDENTIAL": "auth/invalid-app-credential",
    "MISSING_APP_CREDENTIAL": "auth/missing-app-credential",
    "UNAUTHORIZED_DOMAIN": "auth/unauthorized-domain",
    "INVALID_CODE": "auth/invalid-verification-code",
    "MISSING_CODE": "auth/missing-verification-code",
    "INVALID_SESSION_INFO": "auth/invalid-verification-id",
    "SESSION_EXPIRED": "auth/code-expired",
    "API_KEY_INVALID": "auth/invalid-api-key",
    "CONFIGURATION_NOT_FOUND": "auth/configuration-not-found",
}

REJECTED_CODES = {
    "auth/invalid-verification-code",
    "auth/missing-verification-code",
    "auth/invalid-verification-id",
    "auth/code-expired",
}


def parse_error(payload: dict, status_code: int) -> ProviderError:
    """Turn an Identity Toolkit error body into a ProviderError"""
    error = payload.get("error") or {}
    message = error.get("message") or f"HTTP {status_code}"

    # Messages look like "INVALID_PHONE_NUMBER : Invalid format."
    key = message.split(" : ", 1)[0].strip()
    if "API key not valid" in message:
        key = "API_KEY_INVALID"

    code = ERROR_CODES.get(key, "auth/internal-error")
    return ProviderError(message, code=code, rejected=code in REJECTED_CODES)


class FirebasePhoneProvider(PhoneIdentityProvider):
    """Sends and confirms SMS codes through Firebase Auth"""

    def __init__(
        self,
        api_key: str,
        host: Optional[ContainerHost] = None,
        base_url: str = settings.FIREBASE_AUTH_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            api_key: Firebase web API key
            host: Container host widgets mount into
            base_url: Identity Toolkit base URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        super().__init__(host)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)
        # identifier -> sessionInfo of the latest code sent
        self._sessions: Dict[str, str] = {}

    async def close(self):
        await self.client.aclose()

    async def _post(self, method: str, payload: dict) -> dict:
        if not self.api_key:
            raise ProviderError("Firebase API key is not configured", code="auth/invalid-api-key")

        try:
            response = await self.client.post(
                f"{self.base_url}/accounts:{method}",
                params={"key": self.api_key},
                json=payload,
            )
        except httpx.TransportError as e:
            raise ProviderError(
                f"Network error calling {method}: {e}",
                code="auth/network-request-failed",
                network=True,
            ) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code != 200:
            error = parse_error(data, response.status_code)
            logger.error(f"Firebase {method} failed: {error.code} ({error.message})")
            raise error
        return data

    async def send_code(self, identifier: str, purpose: ChallengePurpose, token: Optional[str]) -> None:
        payload = {"phoneNumber": identifier}
        if token:
            payload["recaptchaToken"] = token

        data = await self._post("sendVerificationCode", payload)
        session_info = data.get("sessionInfo")
        if not session_info:
            raise ProviderError("Provider returned no session info", code="auth/internal-error")

        # A newer code supersedes any earlier one for this number
        self._sessions[identifier] = session_info
        logger.info(f"Verification code sent to {identifier}")

    async def confirm_code(self, identifier: str, code: str, challenge_type: str) -> dict:
        session_info = self._sessions.get(identifier)
        if not session_info:
            raise ProviderError(
                "No verification in progress for this number",
                code="auth/missing-verification-id",
                rejected=True,
            )

        data = await self._post("signInWithPhoneNumber", {"sessionInfo": session_info, "code": code})
        self._sessions.pop(identifier, None)
        return {
            "uid": data.get("localId"),
            "phone_number": data.get("phoneNumber", identifier),
            "id_token": data.get("idToken"),
            "refresh_token": data.get("refreshToken"),
            "is_new_user": data.get("isNewUser", False),
        }
