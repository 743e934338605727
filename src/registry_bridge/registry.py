"""Image level registry operations built on the registry client."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from .config import BridgeConfig
from .core.registry_client import RegistryClient
from .core.types import RepositoryLocator
from .exceptions import BridgeError, ProtocolViolationError, UnknownError
from .locator import LocatorResolver
from .results import BatchResult, Result, Success
from .sync import BATCH_TIMEOUT, with_deadline
from .tags import TagCategory, TypedTag, group_tags_by_category, typed_tags
from .utils.digest import verify_digest

logger = logging.getLogger(__name__)

MANIFEST_ENV_LABELS = (
    "AURORA_VERSION",
    "IMAGE_BUILD_TIME",
    "APP_VERSION",
    "JOLOKIA_VERSION",
    "JAVA_VERSION_MAJOR",
    "JAVA_VERSION_MINOR",
    "JAVA_VERSION_BUILD",
    "NODE_VERSION",
)


@dataclass(frozen=True)
class ImageManifestInfo:
    """Build information read from an image's manifest and config."""

    docker_digest: str
    docker_version: str
    aurora_version: Optional[str] = None
    app_version: Optional[str] = None
    build_started: Optional[str] = None
    build_ended: Optional[str] = None
    java_version_major: Optional[str] = None
    java_version_minor: Optional[str] = None
    java_version_build: Optional[str] = None
    jolokia_version: Optional[str] = None
    node_version: Optional[str] = None
    request_path: str = ""


def parse_env(env: Optional[Iterable[str]]) -> Dict[str, str]:
    """Turn a config ``Env`` list of ``KEY=value`` entries into a dict."""
    result: Dict[str, str] = {}
    for entry in env or []:
        key, sep, value = entry.partition("=")
        if sep:
            result[key] = value
    return result


def manifest_info_from_config(
    config: Dict[str, Any], digest: str, request_path: str = ""
) -> ImageManifestInfo:
    """Extract build information from a parsed image config."""
    env = parse_env((config.get("config") or {}).get("Env"))
    labels = {key: env[key] for key in MANIFEST_ENV_LABELS if key in env}
    return ImageManifestInfo(
        docker_digest=digest,
        docker_version=config.get("docker_version") or "",
        aurora_version=labels.get("AURORA_VERSION"),
        app_version=labels.get("APP_VERSION"),
        build_started=labels.get("IMAGE_BUILD_TIME"),
        build_ended=config.get("created"),
        java_version_major=labels.get("JAVA_VERSION_MAJOR"),
        java_version_minor=labels.get("JAVA_VERSION_MINOR"),
        java_version_build=labels.get("JAVA_VERSION_BUILD"),
        jolokia_version=labels.get("JOLOKIA_VERSION"),
        node_version=labels.get("NODE_VERSION"),
        request_path=request_path,
    )


class RegistryService:
    """Tags, manifest information and tag copying for registry images.

    Args:
        client: Open registry client
        resolver: Resolves image paths for batch lookups
        batch_timeout: Deadline in seconds for a whole manifest batch
    """

    def __init__(
        self,
        client: RegistryClient,
        resolver: LocatorResolver,
        batch_timeout: float = BATCH_TIMEOUT,
    ) -> None:
        self.client = client
        self.resolver = resolver
        self.batch_timeout = batch_timeout

    async def get_tags(self, locator: RepositoryLocator) -> List[TypedTag]:
        """List the repository's tags with their categories."""
        tags = await self.client.get_tags(locator)
        logger.debug(f"Found {len(tags)} tags for {locator.default_repo_path}")
        return typed_tags(tags)

    async def get_tags_grouped(
        self, locator: RepositoryLocator
    ) -> Dict[TagCategory, List[str]]:
        """List the repository's tags grouped by category."""
        tags = await self.client.get_tags(locator)
        return group_tags_by_category(tags)

    async def get_image_manifest_information(
        self, locator: RepositoryLocator
    ) -> ImageManifestInfo:
        """Read build information for the locator's tag.

        Args:
            locator: Repository locator with a tag

        Returns:
            ImageManifestInfo

        Raises:
            ProtocolViolationError: If the manifest does not reference a config
        """
        manifest = await self.client.get_manifest(locator)
        config_digest = manifest.config_digest
        if not config_digest:
            raise ProtocolViolationError(
                f"Manifest for {locator.manifest_repo_path} has no config digest",
                source_system=locator.registry,
            )
        config = await self.client.get_config(locator, config_digest)
        return manifest_info_from_config(
            config, manifest.digest, request_path=locator.full_repo_path
        )

    async def _manifest_information_result(
        self, path: str, token: Optional[str]
    ) -> Result[ImageManifestInfo]:
        try:
            locator = self.resolver.resolve(path, token=token)
            info = await self.get_image_manifest_information(locator)
            return Success(info, reference=path)
        except BridgeError as e:
            return e.to_failure(reference=path)
        except Exception as e:
            logger.error(f"Unexpected error for path={path}", exc_info=e)
            error = UnknownError(
                f"Error in response or request name={type(e).__name__} errorMessage={e}",
                cause=e,
            )
            return error.to_failure(reference=path)

    async def get_image_manifest_information_batch(
        self, paths: Iterable[str], token: Optional[str] = None
    ) -> BatchResult[ImageManifestInfo]:
        """Read build information for several image paths at once.

        Each path is resolved and fetched independently; a failing path is
        reported in ``failures`` and does not affect the others.

        Args:
            paths: ``registry/namespace/name/tag`` paths
            token: Caller bearer token used for every path

        Returns:
            BatchResult with one entry per path

        Raises:
            TransientUpstreamError: If the batch does not finish within
                ``batch_timeout`` seconds
        """
        results = await with_deadline(
            asyncio.gather(
                *(self._manifest_information_result(path, token) for path in paths)
            ),
            self.batch_timeout,
        )
        batch = BatchResult.from_results(results)
        if not batch.success:
            logger.info(
                f"Manifest batch finished with {batch.failure_count} of "
                f"{batch.count} failures"
            )
        return batch

    async def copy_tag(
        self, source: RepositoryLocator, target: RepositoryLocator
    ) -> str:
        """Copy an image from one tag to another, across registries if needed.

        Blobs already present in the target repository are skipped.

        Args:
            source: Locator of the existing image, with tag
            target: Locator to push to, with tag

        Returns:
            Digest of the copied manifest, the same in source and target
            because the manifest bytes are pushed unchanged

        Raises:
            ProtocolViolationError: If a fetched blob does not match its digest
        """
        manifest = await self.client.get_manifest(source)

        digests = list(manifest.layer_digests)
        if manifest.config_digest:
            digests.append(manifest.config_digest)

        for digest in digests:
            if await self.client.blob_exists(target, digest):
                logger.debug(f"Blob {digest} already in {target.default_repo_path}")
                continue

            data = await self.client.get_blob(source, digest)
            if not verify_digest(data, digest):
                raise ProtocolViolationError(
                    f"Blob content from {source.default_repo_path} does not match "
                    f"digest {digest}",
                    source_system=source.registry,
                )
            upload_uuid = await self.client.initiate_upload(target)
            await self.client.upload_layer(target, upload_uuid, digest, data)

        await self.client.put_manifest(
            target, manifest.raw or manifest.body or {}, manifest.content_type
        )
        logger.info(
            f"Copied {source.full_repo_path} to {target.full_repo_path} "
            f"digest={manifest.digest}"
        )
        return manifest.digest


async def list_tags(
    config: BridgeConfig, path: str, token: Optional[str] = None
) -> List[TypedTag]:
    """List the categorised tags of a repository path.

    Examples:
        tags = await list_tags(config, "/no_skatteetaten_aurora/whoami")
    """
    resolver = LocatorResolver(config)
    async with RegistryClient(config) as client:
        return await RegistryService(client, resolver).get_tags(
            resolver.resolve(path, token=token)
        )


async def get_image_manifest_information(
    config: BridgeConfig, path: str, token: Optional[str] = None
) -> ImageManifestInfo:
    """Read build information for one ``registry/namespace/name/tag`` path."""
    resolver = LocatorResolver(config)
    async with RegistryClient(config) as client:
        return await RegistryService(client, resolver).get_image_manifest_information(
            resolver.resolve(path, token=token)
        )


async def get_image_manifest_information_batch(
    config: BridgeConfig, paths: Iterable[str], token: Optional[str] = None
) -> BatchResult[ImageManifestInfo]:
    """Read build information for several paths within ``config.batch_timeout``."""
    resolver = LocatorResolver(config)
    async with RegistryClient(config) as client:
        service = RegistryService(client, resolver, batch_timeout=config.batch_timeout)
        return await service.get_image_manifest_information_batch(paths, token)
