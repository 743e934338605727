"""Group membership of cluster users, used to authorize callers."""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

import aiohttp

from ..config import BridgeConfig
from ..core.cache import AsyncTTLCache
from ..core.session import create_session, parse_json_response, send_request
from ..core.status import classify_status
from ..exceptions import (
    IntegrationDisabledError,
    ProtocolViolationError,
    UpstreamClientError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SOURCE_SYSTEM = "Openshift"
IMPLICIT_GROUP = "system:authenticated"
CURRENT_USER_PATH = "/oapi/v1/users/~"
GROUPS_PATH = "/oapi/v1/groups"
USERS_PATH = "/oapi/v1/users"
GROUPS_CACHE_KEY = "groups"


@dataclass(frozen=True)
class UserGroup:
    user: str
    group: str


class ClusterGroups:
    """Lookup tables over a list of user and group pairs."""

    def __init__(self, pairs: Iterable[UserGroup]) -> None:
        self.pairs = list(pairs)
        self._user_groups: Dict[str, List[str]] = defaultdict(list)
        self._group_users: Dict[str, List[str]] = defaultdict(list)
        for pair in self.pairs:
            self._user_groups[pair.user].append(pair.group)
            self._group_users[pair.group].append(pair.user)

    def groups_for_user(self, user: str) -> List[str]:
        return list(self._user_groups.get(user, []))

    def group_exists(self, group: str) -> bool:
        return group in self._group_users


def _metadata_name(resource: Dict[str, Any]) -> Optional[str]:
    return (resource.get("metadata") or {}).get("name")


class ClusterClient:
    """Reads users and groups from the cluster API.

    Args:
        base_url: Cluster API URL
        token: Service token for listing users and groups
        timeout: Per request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        connector: Optional[aiohttp.TCPConnector] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "ClusterClient":
        if not self.session:
            self.session = create_session(self.timeout, self.connector)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self.session and not self.session.closed:
            await self.session.close()

    async def _get(self, path: str, token: Optional[str]) -> Optional[Any]:
        if self.session is None:
            raise RuntimeError("ClusterClient must be used as an async context manager")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        response = await send_request(
            self.session,
            "GET",
            f"{self.base_url}{path}",
            SOURCE_SYSTEM,
            headers=headers,
        )
        if not response.ok:
            raise classify_status(response.status, response.text(), SOURCE_SYSTEM)
        return parse_json_response(response, SOURCE_SYSTEM)

    async def _items(self, path: str) -> List[Dict[str, Any]]:
        body = await self._get(path, self.token)
        items = body.get("items") if isinstance(body, dict) else None
        if not isinstance(items, list):
            raise ProtocolViolationError(
                f"Listing {path} returned no items",
                code=404,
                source_system=SOURCE_SYSTEM,
            )
        return items

    async def find_current_user(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the user resource the token belongs to, None if unknown."""
        return await self._get(CURRENT_USER_PATH, token)

    async def get_groups(self) -> ClusterGroups:
        """Read every declared group membership plus the implicit group.

        Every listed user is also a member of ``system:authenticated``.

        Raises:
            ProtocolViolationError: If a listing has no ``items``
        """
        pairs: List[UserGroup] = []
        for group in await self._items(GROUPS_PATH):
            name = _metadata_name(group)
            users = group.get("users")
            if not name or not isinstance(users, list):
                continue
            pairs.extend(UserGroup(user=user, group=name) for user in users)

        for user in await self._items(USERS_PATH):
            name = _metadata_name(user)
            if name:
                pairs.append(UserGroup(user=name, group=IMPLICIT_GROUP))

        logger.debug(f"Read {len(pairs)} user group memberships")
        return ClusterGroups(pairs)


class GroupResolver:
    """Resolves the groups of the user behind a bearer token.

    The group listing is shared by all callers and served from a cache;
    the user lookup is done for every token.
    """

    def __init__(self, client: ClusterClient, cache: AsyncTTLCache) -> None:
        self.client = client
        self.cache = cache

    @classmethod
    def from_config(
        cls, config: BridgeConfig, client: Optional[ClusterClient] = None
    ) -> "GroupResolver":
        """Build a resolver caching for ``config.group_cache_ttl`` seconds.

        Args:
            config: Bridge settings
            client: Client to use. When omitted one is created from
                ``cluster_url`` and ``cluster_token``, which the caller opens
                with ``async with resolver.client``

        Raises:
            IntegrationDisabledError: If no client is given and no cluster
                url is configured
        """
        if client is None:
            if not config.cluster_url:
                raise IntegrationDisabledError(
                    "Cluster group lookup is not configured", source_system=SOURCE_SYSTEM
                )
            client = ClusterClient(config.cluster_url, config.cluster_token)
        return cls(client, AsyncTTLCache(config.group_cache_ttl))

    async def resolve(self, token: str) -> FrozenSet[str]:
        """Return the names of the groups the token's user belongs to.

        Args:
            token: Caller bearer token

        Returns:
            Frozenset of group names

        Raises:
            ValidationError: If no user can be found for the token
        """
        if not token:
            raise ValidationError("No bearer token given", code=401)
        try:
            user = await self.client.find_current_user(token)
        except UpstreamClientError as e:
            raise ValidationError(
                f"No user information found for the current token: {e.message}",
                code=401,
            ) from e

        username = _metadata_name(user) if isinstance(user, dict) else None
        if not username:
            raise ValidationError("Unable to determine username from response", code=401)

        groups = await self.cache.get_or_compute(GROUPS_CACHE_KEY, self.client.get_groups)
        return frozenset(groups.groups_for_user(username))
