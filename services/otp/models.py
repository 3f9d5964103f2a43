"""Models for OTP verification"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

CODE_LENGTH = 6


class PresentationMode(str, Enum):
    VISIBLE = "visible"
    INVISIBLE = "invisible"

    @property
    def widget_size(self) -> str:
        """Size value the widget provider expects"""
        return "normal" if self is PresentationMode.VISIBLE else "invisible"

    @property
    def display(self) -> str:
        return "block" if self is PresentationMode.VISIBLE else "none"


class ChallengePurpose(str, Enum):
    SIGNUP = "signup"
    SIGNIN = "signin"
    RECOVERY = "recovery"


class Channel(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


class VerifierStatus(str, Enum):
    EMPTY = "empty"
    RENDERING = "rendering"
    READY = "ready"


class LifecycleState(BaseModel):
    """Snapshot of the verifier lifecycle"""
    initialized: bool = False
    rendering: bool = False

    @property
    def status(self) -> VerifierStatus:
        if self.rendering:
            return VerifierStatus.RENDERING
        if self.initialized:
            return VerifierStatus.READY
        return VerifierStatus.EMPTY


@dataclass
class VerifierCallbacks:
    """Caller hooks fired by the widget"""
    on_solved: Optional[Callable[[str], Any]] = None
    on_expired: Optional[Callable[[], Any]] = None
    on_error: Optional[Callable[[Exception], Any]] = None


@dataclass
class VerifierConfig:
    """Configuration handed to the provider when creating a widget"""
    size: str
    callback: Callable[[str], None]
    expired_callback: Callable[[], None]
    error_callback: Callable[[Exception], None]


@dataclass
class VerifierHandle:
    """A rendered, interactive challenge widget"""
    widget_id: str
    container_id: str
    mode: PresentationMode
    verifier: Any = field(repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    token: Optional[str] = field(default=None, repr=False)
    active: bool = True


class ChallengeSession(BaseModel):
    """Pending challenge for an identifier. UI state only, not a security token."""
    identifier: str
    purpose: ChallengePurpose
    channel: Channel
    code_length: int = CODE_LENGTH
    issued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    message: str = ""


class VerificationResult(BaseModel):
    verified: bool
    identifier: str
    purpose: ChallengePurpose
    user_id: Optional[str] = None
    message: str


# API Request/Response models

class VerifierRequest(BaseModel):
    """Request to create or reuse the verifier widget"""
    container_key: Optional[str] = Field(None, min_length=1, max_length=64)
    mode: Optional[PresentationMode] = None


class VerifierStatusResponse(BaseModel):
    ready: bool
    status: VerifierStatus
    widget_id: Optional[str] = None
    container_id: Optional[str] = None
    mode: Optional[PresentationMode] = None


class TokenSubmit(BaseModel):
    """Solved challenge token reported by the presentation layer"""
    token: str = Field(..., min_length=1)


class SendCodeRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=254)
    purpose: ChallengePurpose
    country_code: Optional[str] = Field(None, max_length=5)


class VerifyCodeRequest(BaseModel):
    identifier: str = Field(..., min_length=1, max_length=254)
    purpose: ChallengePurpose
    code: str
    country_code: Optional[str] = Field(None, max_length=5)
