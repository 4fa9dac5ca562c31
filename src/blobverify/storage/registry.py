"""Storage type registry.

Maps ConnectionInfo type names to factories so a storage handle can be
rebuilt from the descriptor another handle produced.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from blobverify.storage.errors import BlobStorageError

if TYPE_CHECKING:
    from blobverify.storage.blob_storage import BlobStorage
    from blobverify.storage.models import ConnectionInfo

logger = logging.getLogger(__name__)

StorageFactory = Callable[[dict[str, Any], bool], "BlobStorage"]

_factories: dict[str, StorageFactory] = {}
_lock = threading.Lock()


def register_storage_type(type_name: str, factory: StorageFactory) -> None:
    """Register a factory for a ConnectionInfo type name.

    Re-registering a name replaces the previous factory.

    Args:
        type_name: Value of ``ConnectionInfo.type`` handled by the factory.
        factory: Callable taking ``(config, is_create)`` and returning a storage.
    """
    with _lock:
        _factories[type_name] = factory
    logger.debug("Registered storage type %s", type_name)


def registered_storage_types() -> list[str]:
    """Return registered type names, sorted."""
    with _lock:
        return sorted(_factories)


def new_storage(info: ConnectionInfo, *, is_create: bool = False) -> BlobStorage:
    """Create a storage handle from a connection descriptor.

    Args:
        info: Descriptor returned by ``BlobStorage.connection_info()``.
        is_create: Whether the backend may create the namespace if missing.

    Returns:
        A new, open storage handle.

    Raises:
        BlobStorageError: If no factory is registered for ``info.type``.
    """
    with _lock:
        factory = _factories.get(info.type)

    if factory is None:
        raise BlobStorageError(f"Unknown storage type: {info.type}")

    return factory(dict(info.config), is_create)
