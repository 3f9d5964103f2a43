"""Supabase email OTP over the GoTrue REST API"""

import logging
from typing import Optional

import httpx

from core.config import settings
from .errors import ProviderError
from .models import ChallengePurpose
from .providers import EmailIdentityProvider

logger = logging.getLogger(__name__)


def _error_message(data: dict, status_code: int) -> str:
    return (
        data.get("msg")
        or data.get("error_description")
        or data.get("message")
        or data.get("error")
        or f"HTTP {status_code}"
    )


class SupabaseEmailProvider(EmailIdentityProvider):
    """Signup confirmation, sign-in codes and password recovery by email"""

    def __init__(
        self,
        url: str,
        anon_key: str,
        redirect_url: str = settings.PASSWORD_RESET_REDIRECT_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.redirect_url = redirect_url
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def close(self):
        await self.client.aclose()

    async def _post(self, path: str, payload: dict, params: Optional[dict] = None, verifying: bool = False) -> dict:
        if not self.url or not self.anon_key:
            raise ProviderError("Supabase URL and anon key are not configured", code="supabase/missing-config")

        try:
            response = await self.client.post(
                f"{self.url}/auth/v1/{path}",
                params=params,
                json=payload,
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {self.anon_key}",
                },
            )
        except httpx.TransportError as e:
            raise ProviderError(f"Network error calling {path}: {e}", code="supabase/network", network=True) from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = _error_message(data, response.status_code)
            code = data.get("error_code") or f"supabase/http-{response.status_code}"
            logger.error(f"Supabase {path} failed: {response.status_code} - {message}")
            # Client errors on verify mean the code itself was refused
            rejected = verifying and response.status_code < 500 and response.status_code != 429
            raise ProviderError(message, code=code, rejected=rejected)
        return data

    async def send_code(self, identifier: str, purpose: ChallengePurpose) -> None:
        if purpose == ChallengePurpose.SIGNUP:
            await self._post("resend", {"type": "signup", "email": identifier})
        elif purpose == ChallengePurpose.SIGNIN:
            await self._post("otp", {"email": identifier, "create_user": True})
        else:
            await self._post("recover", {"email": identifier}, params={"redirect_to": self.redirect_url})
        logger.info(f"Email {purpose.value} code requested for {identifier}")

    async def confirm_code(self, identifier: str, code: str, challenge_type: str) -> dict:
        data = await self._post(
            "verify",
            {"type": challenge_type, "email": identifier, "token": code},
            verifying=True,
        )
        user = data.get("user") or {}
        return {
            "uid": user.get("id"),
            "email": user.get("email", identifier),
            "access_token": data.get("access_token"),
            "refresh_token": data.get("refresh_token"),
        }
