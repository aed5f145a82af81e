from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from beanwire.container import Container


class ContainerAware:
    """Implemented by objects that want a reference to their owning container.

    Every enhanced configuration class implements this contract. A configuration
    class may also implement it directly; its own ``set_container`` then runs
    after the enhanced subtype has stored the back-reference.
    """

    __slots__ = ()

    def set_container(self, container: Container) -> None:
        """Receive the owning container. Called once, before any ``@bean`` method."""


__all__ = ["ContainerAware"]
