"""Tests for the Nexus client, version pagination and image moves."""

import pytest
from aiohttp import web

from registry_bridge.config import NexusConfig
from registry_bridge.exceptions import (
    FailureKind,
    IntegrationDisabledError,
    ProtocolViolationError,
    TransientUpstreamError,
    UpstreamClientError,
    ValidationError,
)
from registry_bridge.nexus import (
    DisabledMoveService,
    MoveImageCommand,
    NexusClient,
    NexusMoveService,
    NexusService,
    Version,
    create_move_service,
)
from registry_bridge.nexus.models import NexusMoveResponse
from tests.helpers import IMAGE, NAMESPACE, move_response, nexus_item, nexus_page

TOKEN = "bmV4dXM6c2VjcmV0"
SHA = "c" * 64


class FakeNexus:
    """Answers search and move calls from prepared responses."""

    def __init__(self) -> None:
        self.pages: dict = {}
        self.search_result: dict = nexus_page([])
        self.search_status = 200
        self.move_status = 200
        self.move_body = None
        self.move_text = None
        self.searches: list = []
        self.moves: list = []

    async def search(self, request: web.Request) -> web.Response:
        self.searches.append((dict(request.query), request.headers.get("Authorization")))
        if self.search_status != 200:
            return web.Response(status=self.search_status, text="search failed")
        if request.query.get("sort") == "version":
            return web.json_response(self.pages[request.query.get("continuationToken")])
        return web.json_response(self.search_result)

    async def move(self, request: web.Request) -> web.Response:
        self.moves.append(
            (
                request.match_info["to"],
                dict(request.query),
                request.headers.get("Authorization"),
            )
        )
        if self.move_text is not None:
            return web.Response(status=self.move_status, text=self.move_text)
        return web.json_response(self.move_body, status=self.move_status)

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/service/rest/v1/search", self.search)
        app.router.add_post("/service/rest/v1/staging/move/{to}", self.move)
        return app


@pytest.fixture
def fake_nexus():
    return FakeNexus()


@pytest.fixture
async def config(aiohttp_server, fake_nexus):
    server = await aiohttp_server(fake_nexus.app())
    return NexusConfig(
        url=str(server.make_url("/")), token=TOKEN, move_enabled=True, max_pages=5
    )


@pytest.fixture
async def client(config):
    async with NexusClient(config) as nexus_client:
        yield nexus_client


@pytest.mark.asyncio
async def test_search_sends_credentials_and_filters(client, fake_nexus):
    fake_nexus.search_result = nexus_page([nexus_item("1.0.0", sha256=SHA)])

    page = await client.search(
        "internal-hosted-snapshot", f"{NAMESPACE}/{IMAGE}", "1.0.0", SHA
    )

    assert page.items[0].version == "1.0.0"
    assert page.items[0].assets[0].checksum.sha256 == SHA
    assert page.continuation_token is None
    params, auth = fake_nexus.searches[0]
    assert auth == f"Basic {TOKEN}"
    assert params == {
        "repository": "internal-hosted-snapshot",
        "name": f"{NAMESPACE}/{IMAGE}",
        "version": "1.0.0",
        "sha256": SHA,
        "format": "docker",
    }


@pytest.mark.asyncio
async def test_search_omits_empty_filters(client, fake_nexus):
    await client.search("repo", "ns/name", None, SHA)
    params, _ = fake_nexus.searches[0]
    assert "version" not in params


@pytest.mark.asyncio
async def test_search_error_is_classified(client, fake_nexus):
    fake_nexus.search_status = 404

    with pytest.raises(UpstreamClientError) as exc_info:
        await client.search("repo", "ns/name")

    assert exc_info.value.source_system == "Nexus"
    assert exc_info.value.code == 404


@pytest.mark.asyncio
async def test_search_rejects_non_object_answer(client, fake_nexus):
    fake_nexus.search_result = [nexus_item("1")]

    with pytest.raises(ProtocolViolationError) as exc_info:
        await client.search("repo", "ns/name")

    assert exc_info.value.source_system == "Nexus"


@pytest.mark.asyncio
async def test_search_versions_is_anonymous(client, fake_nexus):
    fake_nexus.pages[None] = nexus_page([nexus_item("1")])

    await client.search_versions(NAMESPACE, IMAGE, "internal-hosted-release")

    params, auth = fake_nexus.searches[0]
    assert auth is None
    assert params == {
        "name": f"{NAMESPACE}/{IMAGE}",
        "sort": "version",
        "repository": "internal-hosted-release",
        "format": "docker",
    }


@pytest.mark.asyncio
async def test_get_all_versions_follows_tokens(client, config, fake_nexus):
    fake_nexus.pages = {
        None: nexus_page([nexus_item("a", last_modified="t1"), nexus_item("b")], "T1"),
        "T1": nexus_page([nexus_item("c")], "T2"),
        "T2": nexus_page([nexus_item("d")]),
    }

    versions = await NexusService(client, config).get_all_versions(
        NAMESPACE, IMAGE, "internal-hosted-release"
    )

    assert [version.name for version in versions] == ["a", "b", "c", "d"]
    assert versions[0] == Version(name="a", last_modified="t1")
    assert len(fake_nexus.searches) == 3
    assert [params.get("continuationToken") for params, _ in fake_nexus.searches] == [
        None,
        "T1",
        "T2",
    ]


@pytest.mark.asyncio
async def test_get_all_versions_empty(client, config, fake_nexus):
    fake_nexus.pages = {None: nexus_page([])}

    assert await NexusService(client, config).get_all_versions(NAMESPACE, IMAGE, "r") == []


@pytest.mark.asyncio
async def test_get_all_versions_stops_on_repeated_token(client, config, fake_nexus):
    fake_nexus.pages = {
        None: nexus_page([nexus_item("a")], "T1"),
        "T1": nexus_page([nexus_item("b")], "T1"),
    }

    with pytest.raises(ProtocolViolationError, match="repeated"):
        await NexusService(client, config).get_all_versions(NAMESPACE, IMAGE, "r")

    assert len(fake_nexus.searches) == 2


@pytest.mark.asyncio
async def test_get_all_versions_stops_after_max_pages(client, config, fake_nexus):
    fake_nexus.pages = {None: nexus_page([nexus_item("0")], "T1")}
    for page in range(1, 10):
        fake_nexus.pages[f"T{page}"] = nexus_page([nexus_item(str(page))], f"T{page + 1}")

    with pytest.raises(ProtocolViolationError) as exc_info:
        await NexusService(client, config).get_all_versions(NAMESPACE, IMAGE, "r")

    assert exc_info.value.kind == FailureKind.PROTOCOL_VIOLATION
    assert len(fake_nexus.searches) == config.max_pages


@pytest.mark.asyncio
async def test_get_versions_release_then_snapshot(client, config, fake_nexus):
    fake_nexus.pages = {None: nexus_page([nexus_item("1.0.0")])}

    versions = await NexusService(client, config).get_versions(NAMESPACE, IMAGE)

    repositories = [params["repository"] for params, _ in fake_nexus.searches]
    assert repositories == ["internal-hosted-release", "internal-hosted-snapshot"]
    assert [version.name for version in versions] == ["1.0.0", "1.0.0"]


@pytest.mark.asyncio
async def test_move_image_success(client, fake_nexus):
    fake_nexus.search_result = nexus_page(
        [nexus_item("1.0.0", repository="internal-hosted-snapshot", sha256=SHA)]
    )
    fake_nexus.move_body = move_response(
        moved=[{"id": "x", "name": f"{NAMESPACE}/{IMAGE}", "version": "1.0.0"}]
    )

    outcome = await NexusMoveService(client).move_image(
        MoveImageCommand(
            from_repository="internal-hosted-snapshot",
            to_repository="internal-hosted-release",
            sha256=SHA,
            name=f"{NAMESPACE}/{IMAGE}",
        )
    )

    assert outcome.success
    assert outcome.image.repository == "internal-hosted-release"
    assert outcome.image.version == "1.0.0"
    assert outcome.image.sha256 is None
    to_repository, params, auth = fake_nexus.moves[0]
    assert to_repository == "internal-hosted-release"
    assert params["repository"] == "internal-hosted-snapshot"
    assert params["sha256"] == SHA
    assert auth == f"Basic {TOKEN}"


@pytest.mark.asyncio
async def test_move_image_no_match(client, fake_nexus):
    outcome = await NexusMoveService(client).move_image(
        MoveImageCommand("snapshot", "release", SHA)
    )

    assert not outcome.success
    assert "no matching image" in outcome.message
    assert fake_nexus.moves == []


@pytest.mark.asyncio
async def test_move_image_too_many_matches(client, fake_nexus):
    fake_nexus.search_result = nexus_page([nexus_item("1"), nexus_item("2")])

    outcome = await NexusMoveService(client).move_image(
        MoveImageCommand("snapshot", "release", SHA)
    )

    assert not outcome.success
    assert "too many matches" in outcome.message
    assert fake_nexus.moves == []


@pytest.mark.asyncio
async def test_move_image_upstream_refusal(client, fake_nexus):
    fake_nexus.search_result = nexus_page([nexus_item("1")])
    fake_nexus.move_status = 404
    fake_nexus.move_body = move_response(status=404, message="No components found")

    outcome = await NexusMoveService(client).move_image(
        MoveImageCommand("snapshot", "release", SHA)
    )

    assert not outcome.success
    assert outcome.status == 404
    assert outcome.message == "No components found"


@pytest.mark.asyncio
async def test_move_image_without_moved_components(client, fake_nexus):
    fake_nexus.search_result = nexus_page([nexus_item("1")])
    fake_nexus.move_body = move_response(moved=[])

    with pytest.raises(ProtocolViolationError):
        await NexusMoveService(client).move_image(
            MoveImageCommand("snapshot", "release", SHA)
        )


@pytest.mark.asyncio
async def test_move_server_error_carries_body(client, fake_nexus):
    fake_nexus.move_status = 500
    fake_nexus.move_text = "Nexus exploded"

    with pytest.raises(TransientUpstreamError) as exc_info:
        await client.move("snapshot", "release", "ns/name", "1", SHA)

    assert exc_info.value.message == "Nexus exploded"
    assert exc_info.value.code == 500
    assert len(fake_nexus.moves) == 1


@pytest.mark.asyncio
async def test_move_non_json_answer(client, fake_nexus):
    fake_nexus.move_status = 400
    fake_nexus.move_text = "bad request"

    response = await client.move("snapshot", "release", "ns/name", "1", SHA)

    assert not response.ok
    assert response.status == 400
    assert response.message == "bad request"


@pytest.mark.asyncio
async def test_move_non_numeric_status_uses_http_status(client, fake_nexus):
    fake_nexus.move_body = move_response(moved=[{"id": "x", "name": "ns/name", "version": "1"}])
    fake_nexus.move_body["status"] = "OK"

    response = await client.move("snapshot", "release", "ns/name", "1", SHA)

    assert response.ok
    assert response.status == 200
    assert response.components_moved[0].version == "1"


@pytest.mark.parametrize("status", ["OK", None, "", [], True])
def test_move_response_status_falls_back_to_http_status(status):
    response = NexusMoveResponse.from_dict({"status": status, "message": "m"}, 409)

    assert response.status == 409
    assert not response.ok


@pytest.mark.asyncio
async def test_get_single_image(client, fake_nexus):
    fake_nexus.search_result = nexus_page([nexus_item("1.0.0", sha256=SHA)])

    outcome = await NexusMoveService(client).get_single_image(
        "internal-hosted-release", f"{NAMESPACE}/{IMAGE}", "1.0.0", SHA[:6]
    )

    assert outcome.success
    assert outcome.message == "Got exactly one matching image"
    assert outcome.image.sha256 == SHA


@pytest.mark.asyncio
async def test_disabled_move_service_does_no_io():
    service = DisabledMoveService()

    with pytest.raises(IntegrationDisabledError) as exc_info:
        await service.move_image(MoveImageCommand("snapshot", "release", SHA))
    with pytest.raises(IntegrationDisabledError):
        await service.get_single_image("snapshot", None, None, SHA)

    assert exc_info.value.kind == FailureKind.INTEGRATION_DISABLED
    assert exc_info.value.message == "Nexus move service is disabled in this environment"


def test_create_move_service():
    enabled = NexusConfig(url="http://nexus", token=TOKEN, move_enabled=True)
    no_token = NexusConfig(url="http://nexus", move_enabled=True)
    switched_off = NexusConfig(url="http://nexus", token=TOKEN)

    assert isinstance(create_move_service(enabled), NexusMoveService)
    assert isinstance(create_move_service(no_token), DisabledMoveService)
    assert isinstance(create_move_service(switched_off), DisabledMoveService)
    assert isinstance(create_move_service(None), DisabledMoveService)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"from_repository": "", "to_repository": "release", "sha256": SHA},
        {"from_repository": "snapshot", "to_repository": "", "sha256": SHA},
        {"from_repository": "snapshot", "to_repository": "release", "sha256": "abc12"},
    ],
)
def test_move_image_command_validation(kwargs):
    with pytest.raises(ValidationError):
        MoveImageCommand(**kwargs)
