"""reCAPTCHA-style challenge widget mounted into a container"""

import itertools
from typing import Dict, Optional

from .container import ContainerHost, Element
from .errors import ProviderError
from .models import VerifierConfig


ALREADY_RENDERED = "reCAPTCHA has already been rendered in this element"


class WidgetRegistry:
    """Provider-global widget table (the grecaptcha singleton)"""

    def __init__(self):
        self._widgets: Dict[str, "RecaptchaWidget"] = {}
        self._ids = itertools.count()

    def register(self, widget: "RecaptchaWidget") -> str:
        widget_id = str(next(self._ids))
        self._widgets[widget_id] = widget
        return widget_id

    def unregister(self, widget_id: str) -> None:
        self._widgets.pop(widget_id, None)

    def reset(self) -> None:
        """Drop solved responses on every live widget"""
        for widget in self._widgets.values():
            widget.response = None

    def __len__(self) -> int:
        return len(self._widgets)


class RecaptchaWidget:
    """
    A single challenge widget.

    Rendering stamps the container and mounts a frame into it; a container that
    already carries a widget is refused with the provider's "already rendered"
    error. Solve/expire/fail are driven by whatever delivers browser events.
    """

    def __init__(
        self,
        host: ContainerHost,
        container_id: str,
        config: VerifierConfig,
        registry: WidgetRegistry,
    ):
        self.host = host
        self.container_id = container_id
        self.config = config
        self.registry = registry
        self.widget_id: Optional[str] = None
        self.response: Optional[str] = None
        self._destroyed = False

    async def render(self) -> str:
        if self._destroyed:
            raise ProviderError("RecaptchaVerifier instance has been destroyed.", code="auth/internal-error")
        if self.widget_id is not None:
            return self.widget_id

        container = self.host.get_element(self.container_id)
        if container is None:
            raise ProviderError(
                f"reCAPTCHA container {self.container_id!r} not found",
                code="auth/argument-error",
            )
        if container.children or "data-widget-id" in container.attributes:
            raise ProviderError(ALREADY_RENDERED, code="auth/internal-error")

        widget_id = self.registry.register(self)
        container.attributes["data-widget-id"] = widget_id
        container.attributes["data-widget-size"] = self.config.size
        container.append_child(Element(f"{self.container_id}-frame-{widget_id}", tag="iframe"))
        self.widget_id = widget_id
        return widget_id

    def clear(self) -> None:
        if self._destroyed:
            raise ProviderError("RecaptchaVerifier instance has been destroyed.", code="auth/internal-error")
        self._destroyed = True
        if self.widget_id is not None:
            self.registry.unregister(self.widget_id)
        self.host.clear_container(self.container_id)

    def solve(self, token: str) -> None:
        if self._destroyed:
            raise ProviderError("RecaptchaVerifier instance has been destroyed.", code="auth/internal-error")
        self.response = token
        self.config.callback(token)

    def expire(self) -> None:
        self.response = None
        self.config.expired_callback()

    def fail(self, error: Exception) -> None:
        self.response = None
        self.config.error_callback(error)
