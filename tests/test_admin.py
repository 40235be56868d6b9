"""Tests for the /add-user admin command."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from handlers.admin import USAGE, create_admin_app

ADMIN = "1"


@pytest.fixture
async def client(directory, transport, account_store):
    await account_store.remember("42", "AliceCohen", "Alice", "Cohen")
    app = create_admin_app(directory, transport, {ADMIN})
    async with TestClient(TestServer(app)) as test_client:
        yield test_client


async def add_user(client, text: str, user_id: str = ADMIN, command: str = "/add-user"):
    resp = await client.post("/add-user", data={"user_id": user_id, "command": command, "text": text})
    return resp.status, await resp.text()


class TestAddUser:
    """Tests for linking a Wolt name to a Telegram account."""

    async def test_adds_user(self, client, user_store):
        status, text = await add_user(client, '"Alice Cohen" @alicecohen')

        assert status == 200
        assert text == 'OK, got you. I added <@42> as "Alice Cohen"'
        users = await user_store.list_users(names=["Alice Cohen"])
        assert [u.transport_id for u in users] == ["42"]

    async def test_added_user_resolves_right_away(self, client, directory):
        assert await directory.resolve("Alice Cohen") is None

        await add_user(client, '"Alice Cohen" @AliceCohen')

        assert (await directory.resolve("Alice Cohen")).transport_id == "42"

    async def test_unauthorized(self, client, user_store):
        status, text = await add_user(client, '"Alice Cohen" @alicecohen', user_id="2")

        assert status == 401
        assert text == "Unauthorized"
        assert await user_store.list_users() == []

    async def test_unknown_command(self, client):
        status, _ = await add_user(client, '"Alice Cohen" @alicecohen', command="/remove-user")

        assert status == 400

    @pytest.mark.parametrize("text", [
        "",
        "Alice @alicecohen extra",
        '"Alice Cohen" alicecohen',
        '"Alice Cohen',
    ])
    async def test_usage(self, client, text):
        status, body = await add_user(client, text)

        assert status == 200
        assert body == USAGE

    async def test_unknown_account(self, client):
        _, text = await add_user(client, '"Bob" @bob')

        assert text == 'user "bob" not found'


class TestDefaultTimezone:

    async def test_added_user_gets_default_timezone(self, directory, transport, account_store, user_store):
        await account_store.remember("42", "AliceCohen", "Alice", "Cohen")
        app = create_admin_app(directory, transport, {ADMIN}, default_timezone="Asia/Jerusalem")

        async with TestClient(TestServer(app)) as client:
            await add_user(client, '"Alice Cohen" @alicecohen')

        users = await user_store.list_users(names=["Alice Cohen"])
        assert [u.timezone for u in users] == ["Asia/Jerusalem"]

    async def test_no_default_timezone(self, client, user_store):
        await add_user(client, '"Alice Cohen" @alicecohen')

        users = await user_store.list_users(names=["Alice Cohen"])
        assert users[0].timezone is None
