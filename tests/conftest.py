"""Shared fakes for OTP tests"""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from services.otp import (  # noqa: E402
    ChallengeClient,
    ContainerHost,
    EmailIdentityProvider,
    ProviderError,
    SimulatedPhoneProvider,
    VerifierLifecycleManager,
)


class RecordingPhoneProvider(SimulatedPhoneProvider):
    """Simulated provider that records calls and can be told to fail"""

    def __init__(self, host: ContainerHost):
        super().__init__(host, delay=0)
        self.created: List[str] = []
        self.sent: List[tuple] = []
        self.confirmed: List[tuple] = []
        self.render_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.resets = 0

    def create_verifier(self, container_id, config):
        self.created.append(container_id)
        widget = super().create_verifier(container_id, config)
        if self.render_error is not None:
            error = self.render_error

            async def failing_render():
                raise error

            widget.render = failing_render
        return widget

    def reset_widgets(self):
        self.resets += 1
        super().reset_widgets()

    async def send_code(self, identifier, purpose, token):
        self.sent.append((identifier, purpose, token))
        if self.send_error is not None:
            raise self.send_error
        await super().send_code(identifier, purpose, token)

    async def confirm_code(self, identifier, code, challenge_type):
        self.confirmed.append((identifier, code, challenge_type))
        return await super().confirm_code(identifier, code, challenge_type)


class RecordingEmailProvider(EmailIdentityProvider):
    def __init__(self):
        self.sent: List[tuple] = []
        self.confirmed: List[tuple] = []
        self.codes = {}

    async def send_code(self, identifier, purpose):
        self.sent.append((identifier, purpose))
        self.codes[identifier] = "424242"

    async def confirm_code(self, identifier, code, challenge_type):
        self.confirmed.append((identifier, code, challenge_type))
        if self.codes.get(identifier) != code:
            raise ProviderError("Token has expired or is invalid", code="otp_expired", rejected=True)
        return {"uid": "user-1", "email": identifier}


@pytest.fixture
def host():
    return ContainerHost()


@pytest.fixture
def phone_provider(host):
    return RecordingPhoneProvider(host)


@pytest.fixture
def email_provider():
    return RecordingEmailProvider()


@pytest.fixture
def lifecycle(phone_provider, host):
    return VerifierLifecycleManager(
        phone_provider,
        host,
        container_id="c1",
        cleanup_settle=0,
        dom_settle=0,
        conflict_settle=0,
    )


@pytest.fixture
def challenge_client(phone_provider, email_provider, lifecycle):
    return ChallengeClient(phone_provider, email_provider, lifecycle=lifecycle)
