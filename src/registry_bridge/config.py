"""Configuration for the registry bridge.

All components receive their configuration through the frozen dataclasses
below. :class:`BridgeSettings` loads them from ``REGISTRY_BRIDGE_*``
environment variables.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

import pydantic
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .exceptions import ValidationError

ENV_PREFIX = "REGISTRY_BRIDGE_"


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for transient failures."""

    max_retries: int = 3
    min_wait_seconds: float = 0.1
    max_wait_seconds: float = 1.0
    multiplier: float = 0.1
    jitter_seconds: float = 0.1


@dataclass(frozen=True)
class NexusConfig:
    """Nexus repository manager settings."""

    url: str
    token: Optional[str] = None
    move_enabled: bool = False
    release_repository: str = "internal-hosted-release"
    snapshot_repository: str = "internal-hosted-snapshot"
    max_pages: int = 1000
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    @property
    def move_configured(self) -> bool:
        """True when moving images is switched on and credentials exist."""
        return self.move_enabled and bool(self.token)


@dataclass(frozen=True)
class BridgeConfig:
    """Top level configuration.

    Args:
        default_registry: Registry used when a locator names none
        allowed_registries: Registries a caller may name explicitly
        internal_registries: Registries reached over http with a cluster token
        registry_timeout: Per request timeout against registries, in seconds
        batch_timeout: Deadline for a whole batch of manifest lookups
        retry: Retry policy for transient registry failures
        nexus: Nexus settings, None when Nexus is not used
        cluster_url: Cluster API used for group lookups
        cluster_token: Service token used to list cluster users and groups
        group_cache_ttl: Seconds a group listing stays cached
    """

    default_registry: str
    allowed_registries: tuple[str, ...] = ()
    internal_registries: tuple[str, ...] = ()
    registry_timeout: float = 5.0
    batch_timeout: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    nexus: Optional[NexusConfig] = None
    cluster_url: Optional[str] = None
    cluster_token: Optional[str] = None
    group_cache_ttl: float = 300.0

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        """Build configuration from ``REGISTRY_BRIDGE_*`` environment variables.

        Raises:
            ValidationError: If the default registry is missing or a value
                cannot be parsed
        """
        try:
            settings = BridgeSettings()
        except pydantic.ValidationError as e:
            names = sorted(
                {ENV_PREFIX + str(error["loc"][0]).upper() for error in e.errors() if error["loc"]}
            )
            raise ValidationError(f"Invalid settings: {', '.join(names)}") from e
        return settings.to_config()


class BridgeSettings(BaseSettings):
    """Environment variables behind :class:`BridgeConfig`.

    Environment Variables:
        REGISTRY_BRIDGE_DEFAULT_REGISTRY: Registry used when a path names none (required)
        REGISTRY_BRIDGE_ALLOWED_REGISTRIES: Comma separated registries callers may name
        REGISTRY_BRIDGE_INTERNAL_REGISTRIES: Comma separated registries using cluster tokens
        REGISTRY_BRIDGE_NEXUS_URL: Nexus base url, Nexus is disabled when unset
    """

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_ignore_empty=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    default_registry: str = Field(..., min_length=1)
    allowed_registries: Annotated[tuple[str, ...], NoDecode] = ()
    internal_registries: Annotated[tuple[str, ...], NoDecode] = ()
    registry_timeout: float = Field(default=5.0, gt=0)
    batch_timeout: float = Field(default=30.0, gt=0)

    retry_max: int = Field(default=3, ge=0)
    retry_min_wait: float = Field(default=0.1, ge=0)
    retry_max_wait: float = Field(default=1.0, ge=0)

    nexus_url: Optional[str] = None
    nexus_token: Optional[SecretStr] = None
    nexus_move_enabled: bool = False
    nexus_release_repository: str = "internal-hosted-release"
    nexus_snapshot_repository: str = "internal-hosted-snapshot"
    nexus_max_pages: int = Field(default=1000, gt=0)

    cluster_url: Optional[str] = None
    cluster_token: Optional[SecretStr] = None
    group_cache_ttl: float = Field(default=300.0, ge=0)

    @field_validator("allowed_registries", "internal_registries", mode="before")
    @classmethod
    def split_registries(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(item.strip() for item in value.split(",") if item.strip())
        return value

    def to_config(self) -> BridgeConfig:
        nexus = None
        if self.nexus_url:
            nexus = NexusConfig(
                url=self.nexus_url,
                token=_secret(self.nexus_token),
                move_enabled=self.nexus_move_enabled,
                release_repository=self.nexus_release_repository,
                snapshot_repository=self.nexus_snapshot_repository,
                max_pages=self.nexus_max_pages,
            )

        return BridgeConfig(
            default_registry=self.default_registry,
            allowed_registries=self.allowed_registries,
            internal_registries=self.internal_registries,
            registry_timeout=self.registry_timeout,
            batch_timeout=self.batch_timeout,
            retry=RetryPolicy(
                max_retries=self.retry_max,
                min_wait_seconds=self.retry_min_wait,
                max_wait_seconds=self.retry_max_wait,
            ),
            nexus=nexus,
            cluster_url=self.cluster_url,
            cluster_token=_secret(self.cluster_token),
            group_cache_ttl=self.group_cache_ttl,
        )


def _secret(value: Optional[SecretStr]) -> Optional[str]:
    return value.get_secret_value() if value is not None else None
