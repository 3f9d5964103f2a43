"""Lifecycle of the single challenge widget phone sign-in depends on"""

import asyncio
import logging
from typing import Any, Callable, Optional

from core.config import settings
from .container import ContainerHost
from .errors import (
    ConfigurationError,
    ConflictError,
    TransientError,
    VerificationError,
    VerifierExpired,
    VerifierNotReady,
)
from .models import (
    LifecycleState,
    PresentationMode,
    VerifierCallbacks,
    VerifierConfig,
    VerifierHandle,
)
from .providers import PhoneIdentityProvider
from .retry import FailureKind, RetryPolicy

logger = logging.getLogger(__name__)


class VerifierLifecycleManager:
    """
    Owns the process-wide verifier widget, its container and its state.

    States are empty, rendering and ready. Only one render runs at a time;
    callers arriving during a render await the same single-slot future and
    observe the same handle or the same failure. Any component that needs the
    widget asks this manager for it.
    """

    def __init__(
        self,
        provider: PhoneIdentityProvider,
        host: ContainerHost,
        container_id: str = settings.OTP_CONTAINER_ID,
        mode: PresentationMode = PresentationMode(settings.OTP_PRESENTATION_MODE),
        cleanup_settle: float = settings.OTP_CLEANUP_SETTLE_MS / 1000,
        dom_settle: float = settings.OTP_DOM_SETTLE_MS / 1000,
        conflict_settle: float = settings.OTP_CONFLICT_SETTLE_MS / 1000,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.provider = provider
        self.host = host
        self.container_id = container_id
        self.mode = mode
        self.cleanup_settle = cleanup_settle
        self.dom_settle = dom_settle
        self.conflict_settle = conflict_settle
        self.retry_policy = retry_policy or RetryPolicy()

        self._handle: Optional[VerifierHandle] = None
        self._initialized = False
        self._inflight: Optional[asyncio.Future] = None

    @property
    def rendering(self) -> bool:
        return self._inflight is not None

    @property
    def state(self) -> LifecycleState:
        return LifecycleState(initialized=self._initialized, rendering=self.rendering)

    @property
    def handle(self) -> Optional[VerifierHandle]:
        """The live handle, or None"""
        return self._handle if self._can_reuse() else None

    def _can_reuse(self, container_id: Optional[str] = None) -> bool:
        handle = self._handle
        if not (self._initialized and handle and handle.active):
            return False
        if container_id and handle.container_id != container_id:
            return False
        return self.host.has_rendered_widget(handle.container_id)

    def is_ready(self) -> bool:
        return self._can_reuse() and not self.rendering

    async def get_or_create(
        self,
        container_key: Optional[str] = None,
        mode: Optional[PresentationMode] = None,
        callbacks: Optional[VerifierCallbacks] = None,
    ) -> VerifierHandle:
        """Return the live verifier, rendering a new one when there is none"""
        container_id = container_key or self.container_id
        mode = PresentationMode(mode) if mode else self.mode

        while self._inflight is not None:
            logger.info("Verifier is rendering, waiting for it to settle")
            await self._await_inflight()

        if self._can_reuse(container_id):
            logger.info(f"Reusing verifier widget {self._handle.widget_id}")
            return self._handle

        return await self._render(container_id, mode, callbacks or VerifierCallbacks())

    async def _await_inflight(self) -> None:
        """Wait for the current render; a cancelled render only frees the slot"""
        inflight = self._inflight
        try:
            await asyncio.shield(inflight)
        except asyncio.CancelledError:
            if not inflight.cancelled():
                raise
            logger.warning("In-flight verifier render was cancelled")

    async def _render(
        self,
        container_id: str,
        mode: PresentationMode,
        callbacks: VerifierCallbacks,
    ) -> VerifierHandle:
        inflight = asyncio.get_running_loop().create_future()
        self._inflight = inflight
        try:
            handle = await self._create(container_id, mode, callbacks)
        except VerificationError as e:
            self._settle_failed(inflight, e)
            raise
        except Exception as e:
            error = TransientError(f"Failed to initialize phone verification: {e}")
            self._settle_failed(inflight, error)
            raise error from e
        except BaseException:
            inflight.cancel()
            raise
        else:
            inflight.set_result(handle)
            return handle
        finally:
            self._inflight = None

    def _settle_failed(self, inflight: asyncio.Future, error: VerificationError) -> None:
        inflight.set_exception(error)
        # Mark retrieved so an unawaited slot does not log
        inflight.exception()

    async def _create(
        self,
        container_id: str,
        mode: PresentationMode,
        callbacks: VerifierCallbacks,
    ) -> VerifierHandle:
        logger.info(f"Creating {mode.value} verifier in #{container_id}")

        self._teardown()
        await asyncio.sleep(self.cleanup_settle)

        self.host.ensure_container(container_id, mode.display)
        await asyncio.sleep(self.dom_settle)

        verifier = None

        def on_solved(token: str) -> None:
            self._on_solved(verifier, token, callbacks)

        def on_expired() -> None:
            self._on_expired(verifier, callbacks)

        def on_error(error: Exception) -> None:
            self._on_error(verifier, error, callbacks)

        config = VerifierConfig(
            size=mode.widget_size,
            callback=on_solved,
            expired_callback=on_expired,
            error_callback=on_error,
        )

        try:
            verifier = self.provider.create_verifier(container_id, config)
            widget_id = await verifier.render()
        except Exception as e:
            kind = self.retry_policy.classify(e)
            logger.error(f"Verifier setup failed ({kind.value}): {e}")
            self._discard(verifier)
            self._teardown()

            if kind is FailureKind.CONFLICT:
                await asyncio.sleep(self.conflict_settle)
                raise ConflictError(self.retry_policy.user_message(kind)) from e
            if kind is FailureKind.FATAL:
                raise ConfigurationError(f"Failed to initialize phone verification: {e}") from e
            raise TransientError(f"Failed to initialize phone verification: {e}") from e

        handle = VerifierHandle(
            widget_id=str(widget_id),
            container_id=container_id,
            mode=mode,
            verifier=verifier,
        )
        self._handle = handle
        self._initialized = True
        logger.info(f"Verifier widget {handle.widget_id} rendered")
        return handle

    def _discard(self, verifier: Any) -> None:
        if verifier is None:
            return
        try:
            verifier.clear()
        except Exception as e:
            logger.warning(f"Error clearing failed verifier: {e}")

    def _teardown(self) -> None:
        """Best-effort teardown; every step is guarded on its own"""
        handle, self._handle = self._handle, None
        containers = {self.container_id}

        if handle:
            handle.active = False
            handle.token = None
            containers.add(handle.container_id)
            try:
                handle.verifier.clear()
            except Exception as e:
                logger.warning(f"Error clearing verifier widget {handle.widget_id}: {e}")

        try:
            self.provider.reset_widgets()
        except Exception as e:
            logger.warning(f"Error resetting provider widgets: {e}")

        for container_id in containers:
            try:
                self.host.clear_container(container_id)
            except Exception as e:
                logger.warning(f"Error clearing container #{container_id}: {e}")

        self._initialized = False

    def cleanup(self) -> None:
        """Tear down the widget and return to empty. Idempotent, never raises."""
        self._teardown()
        logger.info("Verifier cleaned up")

    def invalidate(self) -> None:
        """Mark the widget stale so the next get_or_create rebuilds it"""
        self._initialized = False
        if self._handle:
            self._handle.active = False
            self._handle.token = None

    async def force_refresh(
        self,
        container_key: Optional[str] = None,
        mode: Optional[PresentationMode] = None,
        callbacks: Optional[VerifierCallbacks] = None,
    ) -> VerifierHandle:
        """Tear down and recreate, bypassing reuse"""
        logger.info("Force refreshing verifier")
        while self._inflight is not None:
            try:
                await self._await_inflight()
            except VerificationError:
                pass
        self.cleanup()
        return await self.get_or_create(container_key, mode, callbacks)

    reset_for_retry = force_refresh

    # Events delivered by the presentation layer

    def _live_verifier(self) -> Any:
        if self._handle is None:
            raise VerifierNotReady("No verifier widget is rendered")
        return self._handle.verifier

    def submit_token(self, token: str) -> None:
        self._live_verifier().solve(token)

    def notify_expired(self) -> None:
        self._live_verifier().expire()

    def notify_error(self, error: Exception) -> None:
        self._live_verifier().fail(error)

    # Widget callbacks

    def _is_current(self, verifier: Any) -> bool:
        return verifier is not None and self._handle is not None and self._handle.verifier is verifier

    def _on_solved(self, verifier: Any, token: str, callbacks: VerifierCallbacks) -> None:
        if not self._is_current(verifier):
            return
        if not token:
            logger.error("Verifier callback received an empty response")
            return
        self._handle.token = token
        logger.info(f"Verifier solved, token length {len(token)}")
        self._fire(callbacks.on_solved, token)

    def _on_expired(self, verifier: Any, callbacks: VerifierCallbacks) -> None:
        # Events from a widget that was already replaced are ignored
        if not self._is_current(verifier):
            return
        logger.warning("Verifier expired")
        self._apply(self.retry_policy.classify(VerifierExpired()))
        self._fire(callbacks.on_expired)

    def _on_error(self, verifier: Any, error: Exception, callbacks: VerifierCallbacks) -> None:
        if not self._is_current(verifier):
            return
        logger.error(f"Verifier error: {error}")
        self._apply(self.retry_policy.classify(error))
        self._fire(callbacks.on_error, error)

    def _apply(self, kind: FailureKind) -> None:
        if kind is FailureKind.CONFLICT:
            self.cleanup()
        else:
            self.invalidate()

    def _fire(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            logger.exception("Verifier callback raised")
