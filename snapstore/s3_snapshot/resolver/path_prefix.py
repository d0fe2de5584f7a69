"""
Key prefix resolution for persistence ids.

The prefix narrows object listings to one entity. A static path prefix in
configuration takes precedence over any resolver.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional, Protocol, runtime_checkable

from ..config import SnapshotPluginConfig
from ..errors import ConfigurationError
from ..model import PersistenceId


@runtime_checkable
class PathPrefixResolver(Protocol):
    """Protocol for key prefix strategies. ``None`` means "no prefix"."""

    def resolve(self, persistence_id: PersistenceId) -> Optional[str]:
        ...


class PersistenceIdPathPrefixResolver:
    """``<persistence_id>/``, matching the default key converter's layout."""

    def resolve(self, persistence_id: PersistenceId) -> Optional[str]:
        return f"{persistence_id.as_string()}/"


class NoPathPrefixResolver:
    """List the whole bucket, recursively."""

    def resolve(self, persistence_id: PersistenceId) -> Optional[str]:
        return None


PATH_PREFIX_RESOLVERS: Dict[str, Callable[[SnapshotPluginConfig], PathPrefixResolver]] = {
    "persistence-id": lambda config: PersistenceIdPathPrefixResolver(),
    "none": lambda config: NoPathPrefixResolver(),
}


def create_path_prefix_resolver(config: SnapshotPluginConfig) -> PathPrefixResolver:
    """Factory function to create the configured path prefix resolver.

    Raises:
        ConfigurationError: If the identifier is not registered
    """
    factory = PATH_PREFIX_RESOLVERS.get(config.path_prefix_resolver)
    if factory is None:
        raise ConfigurationError(
            f"Unknown path prefix resolver '{config.path_prefix_resolver}'. "
            f"Must be one of: {', '.join(sorted(PATH_PREFIX_RESOLVERS))}",
            setting="path_prefix_resolver",
        )
    return factory(config)
