"""Integration tests for signup, login, logout and profile (requires running PG + Redis).

Run: pytest tests/integration/test_auth_flow.py -v
Pre-condition: PG + Redis running, alembic upgrade head
"""

import pytest
from httpx import AsyncClient

from tests.integration.conftest import PASSWORD, bearer, signup, unique_username

pytestmark = pytest.mark.asyncio(loop_scope="session")


class TestSignup:
    async def test_signup_success(self, client: AsyncClient) -> None:
        username = unique_username("su")
        resp = await client.post(
            "/api/v1/auth/signup", json={"username": username, "password": PASSWORD}
        )
        client.cookies.clear()
        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["user"]["username"] == username
        assert body["data"]["user"]["is_admin"] is False
        assert body["data"]["has_bonus"] is False
        assert body["data"]["token"]
        assert "request_id" in body

    async def test_signup_duplicate_username(self, client: AsyncClient) -> None:
        user = await signup(client)
        resp = await client.post(
            "/api/v1/auth/signup", json={"username": user["username"], "password": PASSWORD}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == 1001

    async def test_signup_short_password(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/auth/signup", json={"username": unique_username(), "password": "abc"}
        )
        assert resp.status_code == 422

    async def test_signup_unknown_invite_code(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/auth/signup",
            json={"username": unique_username(), "password": PASSWORD, "inviteCode": "NOPE0000"},
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == 1005

    async def test_new_wallet_is_empty(self, client: AsyncClient) -> None:
        user = await signup(client)
        resp = await client.get("/api/v1/auth/profile", headers=bearer(user))
        wallet = resp.json()["data"]["wallet"]
        assert wallet == {"agon": 0.0, "stoneworks_dollar": 0.0, "agon_escrow": 0.0}


class TestInviteBonus:
    async def test_invite_code_grants_bonus_once(self, client: AsyncClient, admin_user: dict) -> None:
        created = await client.post(
            "/api/v1/admin/invite-codes/generate", headers=bearer(admin_user)
        )
        assert created.status_code == 201
        code = created.json()["data"]["code"]

        user = await signup(client, invite_code=code.lower())
        profile = await client.get("/api/v1/auth/profile", headers=bearer(user))
        wallet = profile.json()["data"]["wallet"]
        assert wallet["agon"] == 100.0
        assert wallet["stoneworks_dollar"] == 100.0

        reuse = await client.post(
            "/api/v1/auth/signup",
            json={"username": unique_username(), "password": PASSWORD, "inviteCode": code},
        )
        assert reuse.status_code == 400
        assert reuse.json()["code"] == 1005


class TestLogin:
    async def test_login_success(self, client: AsyncClient) -> None:
        user = await signup(client)
        resp = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": PASSWORD}
        )
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["token_type"] == "Bearer"
        assert data["user"]["id"] == user["id"]
        assert resp.cookies.get("pp_token") == data["token"]
        client.cookies.clear()

    async def test_login_wrong_password(self, client: AsyncClient) -> None:
        user = await signup(client)
        resp = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": "WrongPass1"}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003

    async def test_login_unknown_user(self, client: AsyncClient) -> None:
        resp = await client.post(
            "/api/v1/auth/login", json={"username": unique_username("ghost"), "password": PASSWORD}
        )
        assert resp.status_code == 401
        assert resp.json()["code"] == 1003

    async def test_usernames_are_case_sensitive(self, client: AsyncClient) -> None:
        user = await signup(client, unique_username("case"))
        upper = user["username"].upper()

        resp = await client.post("/api/v1/auth/login", json={"username": upper, "password": PASSWORD})
        assert resp.status_code == 401

        twin = await signup(client, upper)
        assert twin["id"] != user["id"]


class TestSession:
    async def test_profile(self, client: AsyncClient) -> None:
        user = await signup(client)
        resp = await client.get("/api/v1/auth/profile", headers=bearer(user))
        assert resp.status_code == 200
        assert resp.json()["data"]["user"]["username"] == user["username"]

    async def test_profile_requires_token(self, client: AsyncClient) -> None:
        resp = await client.get("/api/v1/auth/profile")
        assert resp.status_code == 401

    async def test_garbage_token(self, client: AsyncClient) -> None:
        resp = await client.get(
            "/api/v1/auth/profile", headers={"Authorization": "Bearer not-a-jwt"}
        )
        assert resp.status_code == 401

    async def test_logout_revokes_token(self, client: AsyncClient) -> None:
        user = await signup(client)
        resp = await client.post("/api/v1/auth/logout", headers=bearer(user))
        assert resp.status_code == 200

        again = await client.get("/api/v1/auth/profile", headers=bearer(user))
        assert again.status_code == 401

    async def test_other_sessions_survive_logout(self, client: AsyncClient) -> None:
        user = await signup(client)
        login = await client.post(
            "/api/v1/auth/login", json={"username": user["username"], "password": PASSWORD}
        )
        client.cookies.clear()
        second = {"token": login.json()["data"]["token"]}

        await client.post("/api/v1/auth/logout", headers=bearer(user))

        resp = await client.get("/api/v1/auth/profile", headers=bearer(second))
        assert resp.status_code == 200


class TestUserDirectory:
    async def test_search_excludes_self(self, client: AsyncClient) -> None:
        prefix = unique_username("dir")[:10]
        me = await signup(client, f"{prefix}_a")
        await signup(client, f"{prefix}_b")

        resp = await client.get(
            "/api/v1/users/search", params={"q": prefix}, headers=bearer(me)
        )
        assert resp.status_code == 200
        names = [u["username"] for u in resp.json()["data"]]
        assert names == [f"{prefix}_b"]
