"""Storage backend registry and factory."""
import logging
from typing import Any, Dict, Optional, Type

from assetrisk.store.base import (
    AuditLogReader,
    AuditLogSink,
    CriteriaStore,
    FactorInputSource,
    ScoreStore,
)
from assetrisk.store.memory import InMemoryStore

logger = logging.getLogger(__name__)


class UnsupportedStoreError(ValueError):
    """Raised when an unknown storage backend is requested."""


# Format: backend name -> class implementing every storage port
STORE_BACKENDS: Dict[str, Type[InMemoryStore]] = {
    'memory': InMemoryStore,
}


def get_store(backend: str = 'memory', state: Optional[Dict[str, Any]] = None) -> InMemoryStore:
    """Get a storage backend instance by name.

    Args:
        backend: Registered backend name (case-insensitive)
        state: Optional saved state, as produced by the backend's ``to_dict``

    Raises:
        UnsupportedStoreError: If the backend is not registered
    """
    backend_lower = backend.lower()
    if backend_lower not in STORE_BACKENDS:
        raise UnsupportedStoreError(
            f"Unsupported store backend: '{backend}'. "
            f"Supported backends: {', '.join(STORE_BACKENDS.keys())}"
        )
    logger.debug("Creating store backend: %s", backend_lower)
    return STORE_BACKENDS[backend_lower].from_dict(state or {})


def list_supported_stores() -> list[str]:
    """Names of registered storage backends."""
    return list(STORE_BACKENDS.keys())


__all__ = [
    'AuditLogReader',
    'AuditLogSink',
    'CriteriaStore',
    'FactorInputSource',
    'InMemoryStore',
    'ScoreStore',
    'UnsupportedStoreError',
    'get_store',
    'list_supported_stores',
]
