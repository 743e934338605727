"""Example usage of the registry bridge.

Configuration is read from ``REGISTRY_BRIDGE_*`` environment variables, e.g.
``REGISTRY_BRIDGE_DEFAULT_REGISTRY=localhost:15000``.
"""

import asyncio
import logging
import os

from registry_bridge import (
    BridgeConfig,
    BridgeError,
    LocatorResolver,
    RegistryClient,
    RegistryService,
)
from registry_bridge.nexus import NexusClient, NexusService

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

IMAGE = "/no_skatteetaten_aurora/whoami"


async def main():
    """Tags and build information of one image."""
    config = BridgeConfig.from_env()
    resolver = LocatorResolver(config)
    token = os.getenv("CLUSTER_TOKEN")

    try:
        async with RegistryClient(config) as client:
            service = RegistryService(client, resolver, batch_timeout=config.batch_timeout)
            grouped = await service.get_tags_grouped(resolver.resolve(IMAGE, token=token))
            for category, tags in grouped.items():
                logger.info(f"{category.value}: {tags}")

            # Build information for a few tags at once
            paths = [f"{IMAGE}/{tag}" for tags in grouped.values() for tag in tags[:1]]
            batch = await service.get_image_manifest_information_batch(paths, token)
            for info in batch.items:
                logger.info(f"{info.request_path}: aurora={info.aurora_version}")
            for failure in batch.failures:
                logger.warning(f"{failure.reference}: {failure.message}")

    except BridgeError as e:
        logger.error(f"Registry error: {e!r}")


async def versions():
    """Release and snapshot versions from Nexus."""
    config = BridgeConfig.from_env()
    if config.nexus is None:
        logger.info("REGISTRY_BRIDGE_NEXUS_URL not set, skipping Nexus")
        return

    async with NexusClient(config.nexus) as client:
        for version in await NexusService(client, config.nexus).get_versions(
            "no_skatteetaten_aurora", "whoami"
        ):
            logger.info(f"{version.name} last modified {version.last_modified}")


if __name__ == "__main__":
    print("=== Registry ===")
    asyncio.run(main())

    print("\n=== Nexus versions ===")
    asyncio.run(versions())
