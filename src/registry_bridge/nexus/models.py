"""Data models for the Nexus search and staging move APIs."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..exceptions import ValidationError


@dataclass(frozen=True)
class NexusChecksum:
    sha1: str = ""
    sha256: str = ""


@dataclass(frozen=True)
class NexusAsset:
    """A stored file belonging to a component."""

    repository: str
    format: str
    checksum: NexusChecksum
    last_modified: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NexusAsset":
        checksum = data.get("checksum") or {}
        return cls(
            repository=data.get("repository", ""),
            format=data.get("format", ""),
            checksum=NexusChecksum(
                sha1=checksum.get("sha1", ""), sha256=checksum.get("sha256", "")
            ),
            last_modified=data.get("lastModified", ""),
        )


@dataclass(frozen=True)
class NexusItem:
    """A component returned by a search."""

    id: str
    repository: str
    name: str
    version: str
    assets: List[NexusAsset] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NexusItem":
        return cls(
            id=data.get("id", ""),
            repository=data.get("repository", ""),
            name=data.get("name", ""),
            version=data.get("version", ""),
            assets=[NexusAsset.from_dict(asset) for asset in data.get("assets") or []],
        )


@dataclass(frozen=True)
class NexusPage:
    """One page of search results."""

    items: List[NexusItem]
    continuation_token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NexusPage":
        data = data or {}
        return cls(
            items=[NexusItem.from_dict(item) for item in data.get("items") or []],
            continuation_token=data.get("continuationToken"),
        )


@dataclass(frozen=True)
class Version:
    """A published version and when it was last modified."""

    name: str
    last_modified: str


@dataclass(frozen=True)
class ImageRef:
    """Identifies a docker image stored in Nexus."""

    repository: str
    name: str
    version: str
    sha256: Optional[str] = None


@dataclass(frozen=True)
class MovedComponent:
    id: str
    name: str
    version: str


@dataclass(frozen=True)
class NexusMoveResponse:
    """Answer of the staging move API."""

    status: int
    message: str
    destination: str = ""
    components_moved: List[MovedComponent] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @classmethod
    def from_dict(
        cls, data: Optional[Dict[str, Any]], http_status: int
    ) -> "NexusMoveResponse":
        data = data or {}
        payload = data.get("data")
        if not isinstance(payload, dict):
            payload = {}
        return cls(
            status=_status(data.get("status"), http_status),
            message=data.get("message", ""),
            destination=payload.get("destination", ""),
            components_moved=[
                MovedComponent(
                    id=component.get("id", ""),
                    name=component.get("name", ""),
                    version=component.get("version", ""),
                )
                for component in payload.get("componentsMoved") or []
            ],
        )


def _status(value: Any, http_status: int) -> int:
    """Status reported in the body, the HTTP status when it is missing or not a number."""
    if not value or isinstance(value, bool):
        return http_status
    try:
        return int(value)
    except (TypeError, ValueError):
        return http_status


@dataclass(frozen=True)
class MoveOutcome:
    """Result of looking up or moving an image."""

    success: bool
    message: str
    image: Optional[ImageRef] = None
    status: Optional[int] = None


MIN_SHA256_LENGTH = 6


@dataclass(frozen=True)
class MoveImageCommand:
    """Request to move one image between repositories.

    Raises:
        ValidationError: If a repository is empty or the sha256 is shorter
            than six characters
    """

    from_repository: str
    to_repository: str
    sha256: str
    name: Optional[str] = None
    version: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.from_repository or not self.to_repository:
            raise ValidationError("Both source and destination repository are required")
        if len(self.sha256 or "") < MIN_SHA256_LENGTH:
            raise ValidationError(
                f"sha256 must have at least {MIN_SHA256_LENGTH} characters"
            )
