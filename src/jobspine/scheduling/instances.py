"""Registry of live business-object instances, keyed by job identifier.

Populated once at bootstrap, frozen after the engine is initialized, and
queried read-only by the dispatch shim on every fire.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from typing import Any

from jobspine.errors import InstanceLookupError
from jobspine.logging import get_logger

logger = get_logger(__name__)


class InstanceRegistry:
    """Maps job identifiers to the instances whose entry points get called."""

    def __init__(self) -> None:
        self._instances: dict[str, Any] = {}
        self._frozen = False
        self._lock = threading.Lock()

    def register(self, identifier: str, instance: Any) -> None:
        """Register (or replace) the instance for *identifier*.

        Raises:
            RuntimeError: The registry has been frozen.
        """
        with self._lock:
            if self._frozen:
                raise RuntimeError(f"InstanceRegistry is frozen; cannot register {identifier!r}")
            self._instances[identifier] = instance
        logger.debug("instance_registered", identifier=identifier, type=type(instance).__name__)

    def freeze(self) -> None:
        with self._lock:
            self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, identifier: str) -> Any:
        """Return the live instance for *identifier*.

        Raises:
            InstanceLookupError: Nothing is registered under *identifier*.
        """
        try:
            return self._instances[identifier]
        except KeyError:
            raise InstanceLookupError(identifier) from None

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._instances

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._instances))

    def __len__(self) -> int:
        return len(self._instances)
