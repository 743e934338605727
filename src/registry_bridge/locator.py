"""Parsing of caller supplied repository paths into locators."""

import logging
from typing import Optional

from .config import BridgeConfig
from .core.metadata import RegistryMetadataResolver
from .core.types import RepositoryLocator
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

SIZE_WITHOUT_TAG = 3
SIZE_WITH_TAG = 4


def split_repository_path(path: str) -> tuple[str, str, str, Optional[str]]:
    """Split ``registry/namespace/name[/tag]`` into its parts.

    The three segment form also accepts ``registry/namespace/name:tag``.
    The registry part may be empty.

    Args:
        path: Repository path

    Returns:
        Tuple of (registry, namespace, name, tag)

    Raises:
        ValidationError: If the path does not have 3 or 4 segments, or the
            namespace or name is empty
    """
    segments = path.split("/")
    if len(segments) not in (SIZE_WITHOUT_TAG, SIZE_WITH_TAG):
        raise ValidationError(
            f"repo url={path} malformed pattern=registry/namespace/name[/tag]"
        )

    registry, namespace, name = segments[0], segments[1], segments[2]
    tag = segments[3] if len(segments) == SIZE_WITH_TAG else None

    if tag is None and ":" in name:
        name, tag = name.split(":", 1)

    if not namespace or not name:
        raise ValidationError(f"repo url={path} must name both namespace and image")
    if tag == "":
        tag = None

    return registry, namespace, name, tag


class LocatorResolver:
    """Turns repository paths into validated :class:`RepositoryLocator` objects."""

    def __init__(
        self,
        config: BridgeConfig,
        metadata_resolver: Optional[RegistryMetadataResolver] = None,
    ) -> None:
        self.default_registry = config.default_registry
        self.allowed_registries = frozenset(config.allowed_registries)
        self.metadata_resolver = metadata_resolver or RegistryMetadataResolver(
            config.internal_registries
        )

    def resolve(
        self,
        path: str,
        token: Optional[str] = None,
        registry_override: Optional[str] = None,
    ) -> RepositoryLocator:
        """Resolve a repository path.

        Args:
            path: ``registry-or-empty/namespace/name[/tag]``
            token: Caller bearer token, passed through untouched
            registry_override: Registry requested explicitly by the caller,
                takes precedence over the first path segment

        Returns:
            RepositoryLocator for the path

        Raises:
            ValidationError: If the path is malformed or the requested
                registry is not allowed
        """
        path_registry, namespace, name, tag = split_repository_path(path)

        override = registry_override or path_registry
        if override:
            if override not in self.allowed_registries:
                raise ValidationError(f"Invalid registry URL url={override}")
            registry = override
        else:
            registry = self.default_registry

        metadata = self.metadata_resolver.get_metadata(registry)
        logger.debug(
            f"Resolved locator registry={registry} scheme={metadata.api_scheme} "
            f"repo={namespace}/{name} tag={tag}"
        )

        return RepositoryLocator(
            registry=registry,
            api_scheme=metadata.api_scheme,
            namespace=namespace,
            image_name=name,
            image_tag=tag,
            token=token,
            auth_method=metadata.authentication_method,
        )
