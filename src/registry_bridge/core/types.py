"""Core data types for registry access."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional

from multidict import CIMultiDictProxy

MANIFEST_V1 = "application/vnd.docker.distribution.manifest.v1+json"
MANIFEST_V2 = "application/vnd.docker.distribution.manifest.v2+json"
CONTAINER_CONFIG_V1 = "application/vnd.docker.container.image.v1+json"

DOCKER_CONTENT_DIGEST_HEADER = "Docker-Content-Digest"
DOCKER_UPLOAD_UUID_HEADER = "Docker-Upload-UUID"


class AuthenticationMethod(str, Enum):
    """How requests to a registry are authenticated."""

    NONE = "None"
    BEARER = "Bearer"


@dataclass(frozen=True)
class RegistryMetadata:
    """Static facts about a registry host."""

    registry: str
    api_scheme: str
    authentication_method: AuthenticationMethod
    is_internal: bool

    @property
    def base_url(self) -> str:
        return f"{self.api_scheme}://{self.registry}/v2"


@dataclass(frozen=True)
class RepositoryLocator:
    """Validated reference to a repository, optionally at a tag."""

    registry: str
    api_scheme: str
    namespace: str
    image_name: str
    image_tag: Optional[str] = None
    token: Optional[str] = None
    auth_method: AuthenticationMethod = AuthenticationMethod.NONE

    @property
    def base_url(self) -> str:
        return f"{self.api_scheme}://{self.registry}/v2"

    @property
    def default_repo_path(self) -> str:
        return f"{self.namespace}/{self.image_name}"

    @property
    def manifest_repo_path(self) -> str:
        return f"{self.namespace}/{self.image_name}/{self.image_tag}"

    @property
    def full_repo_path(self) -> str:
        parts = [self.registry, self.namespace, self.image_name]
        if self.image_tag:
            parts.append(self.image_tag)
        return "/".join(parts)

    def with_tag(self, tag: str) -> "RepositoryLocator":
        """Return a copy of this locator pointing at another tag."""
        return replace(self, image_tag=tag)

    def __repr__(self) -> str:
        # Token stays out of logs and tracebacks
        return (
            f"RepositoryLocator(registry={self.registry!r}, "
            f"repo={self.default_repo_path!r}, tag={self.image_tag!r})"
        )


@dataclass(frozen=True)
class RawResponse:
    """Fully read HTTP response."""

    status: int
    headers: CIMultiDictProxy
    content_type: str
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ManifestResponse:
    """A v2 manifest together with the headers that identify it."""

    content_type: str
    digest: str
    body: Optional[dict[str, Any]]
    headers: CIMultiDictProxy
    raw: bytes = b""

    @property
    def config_digest(self) -> Optional[str]:
        if not self.body:
            return None
        return (self.body.get("config") or {}).get("digest")

    @property
    def layer_digests(self) -> list[str]:
        if not self.body:
            return []
        return [layer["digest"] for layer in self.body.get("layers", [])]
