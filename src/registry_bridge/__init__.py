"""Registry Bridge - Async access to Docker registries and Nexus for image metadata."""

__version__ = "0.1.0"

from .config import BridgeConfig, BridgeSettings, NexusConfig, RetryPolicy
from .core.registry_client import RegistryClient
from .exceptions import (
    BridgeError,
    Failure,
    FailureKind,
    IntegrationDisabledError,
    ProtocolViolationError,
    TransientUpstreamError,
    UnknownError,
    UpstreamClientError,
    UpstreamError,
    ValidationError,
)
from .locator import LocatorResolver
from .registry import (
    RegistryService,
    get_image_manifest_information,
    get_image_manifest_information_batch,
    list_tags,
)
from .results import BatchResult, Success
from .tags import TagCategory, TypedTag, classify_tag

__all__ = [
    "BridgeConfig",
    "BridgeSettings",
    "NexusConfig",
    "RetryPolicy",
    "RegistryClient",
    "RegistryService",
    "LocatorResolver",
    "list_tags",
    "get_image_manifest_information",
    "get_image_manifest_information_batch",
    "TagCategory",
    "TypedTag",
    "classify_tag",
    "BatchResult",
    "Success",
    "Failure",
    "FailureKind",
    "BridgeError",
    "ValidationError",
    "UpstreamError",
    "UpstreamClientError",
    "TransientUpstreamError",
    "ProtocolViolationError",
    "IntegrationDisabledError",
    "UnknownError",
]
