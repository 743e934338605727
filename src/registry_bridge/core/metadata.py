"""Registry host to scheme and authentication mapping."""

import re
from typing import Iterable

from .types import AuthenticationMethod, RegistryMetadata

IPV4_WITH_PORT_PATTERN = re.compile(
    r"^((25[0-5]|2[0-4][0-9]|1[0-9][0-9]|[1-9]?[0-9])\.){3}"
    r"(25[0-5]|2[0-4][0-9]|1[0-9][0-9]|[1-9]?[0-9]):[0-9]{1,5}$"
)


def is_ipv4_with_port(registry: str) -> bool:
    """Check if a registry host is a bare ``a.b.c.d:port`` address."""
    return bool(IPV4_WITH_PORT_PATTERN.match(registry))


class RegistryMetadataResolver:
    """Derives :class:`RegistryMetadata` from the configured internal hosts.

    Internal registries (listed hosts and bare IPv4 addresses with a port)
    are spoken to over http with the caller's cluster token, everything else
    over https without authentication. The mapping never does I/O, so
    results are kept forever per host.
    """

    def __init__(self, internal_registries: Iterable[str]) -> None:
        self.internal_registries = frozenset(internal_registries)
        self._cache: dict[str, RegistryMetadata] = {}

    def is_internal(self, registry: str) -> bool:
        return registry in self.internal_registries or is_ipv4_with_port(registry)

    def get_metadata(self, registry: str) -> RegistryMetadata:
        """Get metadata for a registry host.

        Args:
            registry: Registry host, optionally with port

        Returns:
            RegistryMetadata for the host
        """
        metadata = self._cache.get(registry)
        if metadata is None:
            if self.is_internal(registry):
                metadata = RegistryMetadata(
                    registry=registry,
                    api_scheme="http",
                    authentication_method=AuthenticationMethod.BEARER,
                    is_internal=True,
                )
            else:
                metadata = RegistryMetadata(
                    registry=registry,
                    api_scheme="https",
                    authentication_method=AuthenticationMethod.NONE,
                    is_internal=False,
                )
            self._cache[registry] = metadata
        return metadata
