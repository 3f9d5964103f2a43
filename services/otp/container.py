"""In-process container host the verifier widget mounts into"""

import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Attributes a widget provider stamps on its container
PROVIDER_ATTRIBUTE_PREFIX = "data-widget"


class Element:
    """Minimal element node: id, children, inline style and attributes"""

    def __init__(self, element_id: Optional[str] = None, tag: str = "div"):
        self.id = element_id
        self.tag = tag
        self.children: List["Element"] = []
        self.style: Dict[str, str] = {}
        self.attributes: Dict[str, str] = {}

    def append_child(self, child: "Element") -> "Element":
        self.children.append(child)
        return child

    def find(self, element_id: str) -> Optional["Element"]:
        if self.id == element_id:
            return self
        for child in self.children:
            found = child.find(element_id)
            if found:
                return found
        return None

    def __repr__(self) -> str:
        return f"<{self.tag} id={self.id!r} children={len(self.children)}>"


class ContainerHost:
    """Owns the element tree and the lookups the lifecycle manager needs"""

    def __init__(self):
        self.body = Element("body", tag="body")

    def get_element(self, element_id: str) -> Optional[Element]:
        return self.body.find(element_id)

    def create_element(self, element_id: str, tag: str = "div") -> Element:
        """Create an element and append it to the body"""
        element = Element(element_id, tag=tag)
        self.body.append_child(element)
        return element

    def ensure_container(self, element_id: str, display: str) -> Element:
        """Return the container, creating it if missing, with its visibility set"""
        container = self.get_element(element_id)
        if container is None:
            container = self.create_element(element_id)
            logger.info(f"Verifier container {element_id!r} created")
        container.style["display"] = display
        return container

    def has_rendered_widget(self, element_id: str) -> bool:
        container = self.get_element(element_id)
        return bool(container and container.children)

    def clear_container(self, element_id: str) -> None:
        """Empty the container and strip provider-applied attributes"""
        container = self.get_element(element_id)
        if container is None:
            return
        container.children.clear()
        for name in [n for n in container.attributes if n.startswith(PROVIDER_ATTRIBUTE_PREFIX)]:
            del container.attributes[name]
