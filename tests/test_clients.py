import json

import pytest
import respx
from httpx import Response

from envrefresh.clients import PermissionClient
from envrefresh.core.errors import CollaboratorError

URL = "https://perm-func.azurewebsites.net/api/permissions"


@pytest.mark.asyncio
async def test_grant_posts_action_and_returns_added_count():
    client = PermissionClient(URL, "secret-key")

    with respx.mock:
        route = respx.post(URL).mock(return_value=Response(200, json={"addedCount": 3}))

        added = await client.grant("qa", "SelfServiceRefresh")

        assert added == 3
        request = route.calls.last.request
        assert request.headers["x-functions-key"] == "secret-key"
        assert json.loads(request.content) == {
            "action": "Grant",
            "environment": "qa",
            "serviceAccount": "SelfServiceRefresh",
        }


@pytest.mark.asyncio
async def test_revoke_returns_removed_count():
    client = PermissionClient(URL)

    with respx.mock:
        route = respx.post(URL).mock(return_value=Response(200, json={"removedCount": 2}))

        assert await client.revoke("qa", "SelfServiceRefresh") == 2
        assert "x-functions-key" not in route.calls.last.request.headers


@pytest.mark.asyncio
async def test_missing_count_means_nothing_changed():
    client = PermissionClient(URL)

    with respx.mock:
        respx.post(URL).mock(return_value=Response(200, json={"message": "already granted"}))

        assert await client.grant("qa", "SelfServiceRefresh") == 0


@pytest.mark.asyncio
async def test_retry_on_503():
    client = PermissionClient(URL, max_retries=2, backoff_factor=0)

    with respx.mock:
        route = respx.post(URL)
        route.side_effect = [Response(503), Response(200, json={"addedCount": 1})]

        assert await client.grant("qa", "SelfServiceRefresh") == 1
        assert route.call_count == 2


@pytest.mark.asyncio
async def test_retries_exhausted_raise_collaborator_error():
    client = PermissionClient(URL, max_retries=2, backoff_factor=0)

    with respx.mock:
        route = respx.post(URL).mock(return_value=Response(500))

        with pytest.raises(CollaboratorError, match="failed after 2"):
            await client.grant("qa", "SelfServiceRefresh")
        assert route.call_count == 2


@pytest.mark.asyncio
async def test_permanent_error_is_not_retried():
    client = PermissionClient(URL, backoff_factor=0)

    with respx.mock:
        route = respx.post(URL).mock(return_value=Response(403, text="forbidden"))

        with pytest.raises(CollaboratorError, match="HTTP 403"):
            await client.grant("qa", "SelfServiceRefresh")
        assert route.call_count == 1


@pytest.mark.asyncio
async def test_non_numeric_count_is_rejected():
    client = PermissionClient(URL)

    with respx.mock:
        respx.post(URL).mock(return_value=Response(200, json={"addedCount": "many"}))

        with pytest.raises(CollaboratorError):
            await client.grant("qa", "SelfServiceRefresh")
