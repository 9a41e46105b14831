"""Object store backends and registry.

This module provides:
- ObjectStore: Abstract base class for all object store backends
- Backend registry: Register and retrieve backend factories
- get_object_store(): Factory function for the configured backend
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

from daily_export.exceptions import ConfigValidationError
from daily_export.storage.base import ObjectStore, StorageResult

logger = logging.getLogger(__name__)

__all__ = [
    "BACKEND_REGISTRY",
    "ObjectStore",
    "StorageResult",
    "get_object_store",
    "list_backends",
    "register_backend",
]

BackendFactory = Callable[..., ObjectStore]

BACKEND_REGISTRY: Dict[str, BackendFactory] = {}


def register_backend(name: str) -> Callable[[BackendFactory], BackendFactory]:
    """Decorator to register an object store factory.

    Usage:
        @register_backend("my_backend")
        def my_backend_factory(storage_cfg, **kwargs) -> ObjectStore:
            return MyObjectStore(...)
    """

    def decorator(factory: BackendFactory) -> BackendFactory:
        BACKEND_REGISTRY[name.lower()] = factory
        return factory

    return decorator


def list_backends() -> List[str]:
    """Return all registered backend identifiers."""
    return sorted(BACKEND_REGISTRY.keys())


def get_object_store(storage_cfg: Any, **kwargs: Any) -> ObjectStore:
    """Build the object store selected by ``storage_cfg.backend``."""
    backend_type = str(storage_cfg.backend).lower()
    factory = BACKEND_REGISTRY.get(backend_type)
    if not factory:
        raise ConfigValidationError(
            f"Storage backend '{backend_type}' is not available. "
            f"Available backends: {', '.join(list_backends())}.",
            key="storage.backend",
        )
    logger.debug("Creating %s object store", backend_type)
    return factory(storage_cfg, **kwargs)


@register_backend("azure")
def _azure_factory(storage_cfg: Any, credential: Any = None) -> ObjectStore:
    from daily_export.storage.azure_blob import AzureBlobObjectStore

    return AzureBlobObjectStore.from_settings(storage_cfg, credential=credential)


@register_backend("s3")
def _s3_factory(storage_cfg: Any, **_: Any) -> ObjectStore:
    from daily_export.storage.s3 import S3ObjectStore

    return S3ObjectStore.from_settings(storage_cfg)


@register_backend("local")
def _local_factory(storage_cfg: Any, **_: Any) -> ObjectStore:
    from daily_export.storage.local import LocalObjectStore

    return LocalObjectStore(storage_cfg.local_path, prefix=storage_cfg.key_prefix)
