"""Moving a uniquely identified image between Nexus repositories."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ..config import NexusConfig
from ..exceptions import IntegrationDisabledError, ProtocolViolationError
from .client import SOURCE_SYSTEM, NexusClient
from .models import ImageRef, MoveImageCommand, MoveOutcome, NexusMoveResponse

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "Found no matching image"
TOO_MANY_MATCHES_MESSAGE = "Got too many matches when expecting single match"
SINGLE_MATCH_MESSAGE = "Got exactly one matching image"
DISABLED_MESSAGE = "Nexus move service is disabled in this environment"


class MoveService(ABC):
    """Finds one image in a repository and moves it to another."""

    @abstractmethod
    async def get_single_image(
        self,
        from_repository: str,
        name: Optional[str],
        version: Optional[str],
        sha256: str,
    ) -> MoveOutcome:
        """Look up the single image matching the given fields."""

    @abstractmethod
    async def move_image(self, command: MoveImageCommand) -> MoveOutcome:
        """Look up the image described by ``command`` and move it."""


class NexusMoveService(MoveService):
    def __init__(self, client: NexusClient) -> None:
        self.client = client

    async def get_single_image(
        self,
        from_repository: str,
        name: Optional[str],
        version: Optional[str],
        sha256: str,
    ) -> MoveOutcome:
        page = await self.client.search(from_repository, name or "", version, sha256)
        if not page.items:
            logger.info(
                f"{NO_MATCH_MESSAGE} in {from_repository} name={name} "
                f"version={version} sha256={sha256}"
            )
            return MoveOutcome(success=False, message=NO_MATCH_MESSAGE)
        if len(page.items) > 1:
            return MoveOutcome(success=False, message=TOO_MANY_MATCHES_MESSAGE)

        item = page.items[0]
        found_sha256 = item.assets[0].checksum.sha256 if item.assets else ""
        return MoveOutcome(
            success=True,
            message=SINGLE_MATCH_MESSAGE,
            image=ImageRef(
                repository=item.repository,
                name=item.name,
                version=item.version,
                sha256=found_sha256 or sha256,
            ),
        )

    async def move_image(self, command: MoveImageCommand) -> MoveOutcome:
        """Move the single image matching ``command``.

        The image must match exactly once in the source repository; any
        other number of matches ends the move with an unsuccessful outcome
        and no move request is sent.

        Args:
            command: What to move and where

        Returns:
            MoveOutcome, with the moved image on success

        Raises:
            ProtocolViolationError: If Nexus reports success without listing
                the moved component
            TransientUpstreamError: If Nexus fails with a server error
        """
        lookup = await self.get_single_image(
            command.from_repository, command.name, command.version, command.sha256
        )
        if not lookup.success or lookup.image is None:
            return lookup

        found = lookup.image
        response = await self.client.move(
            found.repository,
            command.to_repository,
            found.name,
            found.version,
            found.sha256 or command.sha256,
        )
        return self._reconcile(found, command.to_repository, response)

    def _reconcile(
        self, found: ImageRef, to_repository: str, response: NexusMoveResponse
    ) -> MoveOutcome:
        if not response.ok:
            logger.error(
                f"Failed to move image {found.name}:{found.version} with sha "
                f"{found.sha256} status={response.status} message={response.message}"
            )
            return MoveOutcome(
                success=False, message=response.message, status=response.status
            )

        if not response.components_moved:
            raise ProtocolViolationError(
                f"Move of {found.name}:{found.version} to {to_repository} "
                f"succeeded without listing moved components",
                code=response.status,
                source_system=SOURCE_SYSTEM,
            )

        moved = response.components_moved[0]
        image = ImageRef(
            repository=response.destination or to_repository,
            name=moved.name,
            version=moved.version,
        )
        logger.info(f"Moved image {image.name}:{image.version} to {image.repository}")
        return MoveOutcome(
            success=True, message=response.message, image=image, status=response.status
        )


class DisabledMoveService(MoveService):
    """Used when moving is not configured; every call fails without I/O."""

    async def get_single_image(
        self,
        from_repository: str,
        name: Optional[str],
        version: Optional[str],
        sha256: str,
    ) -> MoveOutcome:
        raise IntegrationDisabledError(DISABLED_MESSAGE, source_system=SOURCE_SYSTEM)

    async def move_image(self, command: MoveImageCommand) -> MoveOutcome:
        raise IntegrationDisabledError(DISABLED_MESSAGE, source_system=SOURCE_SYSTEM)


def create_move_service(
    config: Optional[NexusConfig], client: Optional[NexusClient] = None
) -> MoveService:
    """Pick the move service matching the configuration.

    Args:
        config: Nexus settings, None when Nexus is not configured
        client: Client to move with. When omitted a new one is created, which
            the caller opens with ``async with service.client``

    Returns:
        NexusMoveService when moving is enabled with credentials,
        DisabledMoveService otherwise
    """
    if config is None or not config.move_configured:
        logger.info("Nexus move is not configured, using disabled move service")
        return DisabledMoveService()
    if client is None:
        client = NexusClient(config)
    return NexusMoveService(client)
