"""Version listings aggregated across Nexus search pages."""

import logging
from typing import List, Optional, Set

from ..config import NexusConfig
from ..exceptions import ProtocolViolationError
from .client import SOURCE_SYSTEM, NexusClient
from .models import NexusItem, Version

logger = logging.getLogger(__name__)


def to_version(item: NexusItem) -> Version:
    last_modified = item.assets[0].last_modified if item.assets else ""
    return Version(name=item.version, last_modified=last_modified)


class NexusService:
    """Reads complete version lists by following continuation tokens."""

    def __init__(self, client: NexusClient, config: NexusConfig) -> None:
        self.client = client
        self.config = config

    async def get_all_versions(
        self, namespace: str, name: str, repository: str
    ) -> List[Version]:
        """Collect every version of an image in one repository.

        Pages are requested one after another, each with the token returned
        by the previous one, so the result keeps page order and then the
        order within each page.

        Args:
            namespace: Image namespace
            name: Image name
            repository: Repository to list from

        Returns:
            List of versions

        Raises:
            ProtocolViolationError: If Nexus repeats a continuation token or
                returns more than ``max_pages`` pages
        """
        versions: List[Version] = []
        seen_tokens: Set[str] = set()
        token: Optional[str] = None
        pages = 0

        while True:
            page = await self.client.search_versions(
                namespace, name, repository, continuation_token=token
            )
            pages += 1
            versions.extend(to_version(item) for item in page.items)

            token = page.continuation_token
            if not token:
                break
            if token in seen_tokens:
                raise ProtocolViolationError(
                    f"Continuation token {token} repeated while listing "
                    f"{namespace}/{name} in {repository}",
                    source_system=SOURCE_SYSTEM,
                )
            if pages >= self.config.max_pages:
                raise ProtocolViolationError(
                    f"More than {self.config.max_pages} pages while listing "
                    f"{namespace}/{name} in {repository}",
                    source_system=SOURCE_SYSTEM,
                )
            seen_tokens.add(token)

        logger.debug(
            f"Found {len(versions)} versions of {namespace}/{name} in "
            f"{repository} over {pages} pages"
        )
        return versions

    async def get_versions(self, namespace: str, name: str) -> List[Version]:
        """Versions from the release repository followed by the snapshot one."""
        release = await self.get_all_versions(
            namespace, name, self.config.release_repository
        )
        snapshot = await self.get_all_versions(
            namespace, name, self.config.snapshot_repository
        )
        return release + snapshot
