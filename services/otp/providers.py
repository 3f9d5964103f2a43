"""Identity provider contracts and the simulated test-number provider"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Set

from .container import ContainerHost
from .errors import ProviderError
from .models import ChallengePurpose, VerifierConfig
from .recaptcha import RecaptchaWidget, WidgetRegistry

logger = logging.getLogger(__name__)

# Test phone numbers with their fixed OTP codes
TEST_PHONE_NUMBERS: Dict[str, str] = {
    "+911234567890": "123456",
    "+15551234567": "654321",
    "+447911123456": "999888",
    "+33123456789": "111222",
}


class PhoneIdentityProvider(ABC):
    """Provider that sends SMS codes behind a human-presence widget"""

    def __init__(self, host: Optional[ContainerHost] = None):
        self.host = host or ContainerHost()
        self.widgets = WidgetRegistry()

    def create_verifier(self, container_id: str, config: VerifierConfig) -> RecaptchaWidget:
        return RecaptchaWidget(self.host, container_id, config, self.widgets)

    def reset_widgets(self) -> None:
        """Reset provider-global widget state"""
        self.widgets.reset()

    @abstractmethod
    async def send_code(self, identifier: str, purpose: ChallengePurpose, token: Optional[str]) -> None:
        ...

    @abstractmethod
    async def confirm_code(self, identifier: str, code: str, challenge_type: str) -> dict:
        ...

    async def close(self) -> None:
        pass


class EmailIdentityProvider(ABC):
    """Provider that mails one-time codes; no widget involved"""

    @abstractmethod
    async def send_code(self, identifier: str, purpose: ChallengePurpose) -> None:
        ...

    @abstractmethod
    async def confirm_code(self, identifier: str, code: str, challenge_type: str) -> dict:
        ...

    async def close(self) -> None:
        pass


class SimulatedPhoneProvider(PhoneIdentityProvider):
    """Accepts only the fixed test numbers; each has a known code"""

    def __init__(
        self,
        host: Optional[ContainerHost] = None,
        delay: float = 1.5,
        numbers: Optional[Dict[str, str]] = None,
    ):
        super().__init__(host)
        self.delay = delay
        self.numbers = dict(numbers if numbers is not None else TEST_PHONE_NUMBERS)
        self._pending: Set[str] = set()

    async def send_code(self, identifier: str, purpose: ChallengePurpose, token: Optional[str]) -> None:
        if identifier not in self.numbers:
            raise ProviderError(
                f"Phone number {identifier} is not in test numbers. "
                f"Available test numbers: {', '.join(self.numbers)}",
                code="auth/invalid-phone-number",
            )

        # Simulate network delay
        await asyncio.sleep(self.delay)
        self._pending.add(identifier)
        logger.info(f"Simulated OTP for {identifier}: {self.numbers[identifier]}")

    async def confirm_code(self, identifier: str, code: str, challenge_type: str) -> dict:
        if identifier not in self._pending:
            raise ProviderError("No code was sent to this number", code="auth/code-expired", rejected=True)
        if code != self.numbers[identifier]:
            raise ProviderError("Invalid OTP code", code="auth/invalid-verification-code", rejected=True)

        self._pending.discard(identifier)
        return {
            "uid": f"simulated_{int(time.time() * 1000)}",
            "phone_number": identifier,
        }
