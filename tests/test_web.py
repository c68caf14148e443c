"""인증 웹 라우터 테스트"""

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from core.domain.errors import AuthExpiredError
from adapters.web.auth_routes import get_authentication_usecase, router

from .conftest import ACCOUNT_EMAIL, store_valid_credential


@pytest_asyncio.fixture
async def client(authentication):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_authentication_usecase] = lambda: authentication

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


class TestAuthStart:
    """인증 시작"""

    @pytest.mark.asyncio
    async def test_redirects_to_consent_page(self, client):
        response = await client.get("/auth/start", params={"email": ACCOUNT_EMAIL})

        assert response.status_code == 307
        assert response.headers["location"].startswith("https://auth.example.com/")
        assert "code_challenge=" in response.headers["location"]


class TestAuthCallback:
    """OAuth 콜백"""

    @pytest.mark.asyncio
    async def test_success_stores_credential(self, client, authentication, vault):
        _, state = await authentication.start_authorization_code_flow()

        response = await client.get("/auth/callback", params={"code": "code-1", "state": state})

        assert response.status_code == 200
        assert ACCOUNT_EMAIL in response.text
        assert (await vault.load(ACCOUNT_EMAIL)).refresh_token == "new-refresh"

    @pytest.mark.asyncio
    async def test_provider_error(self, client):
        response = await client.get(
            "/auth/callback", params={"error": "access_denied", "error_description": "user cancelled"}
        )
        assert response.status_code == 400
        assert "access_denied" in response.text

    @pytest.mark.asyncio
    async def test_missing_parameters(self, client):
        response = await client.get("/auth/callback", params={"code": "code-1"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_state(self, client, webmail_client):
        response = await client.get("/auth/callback", params={"code": "code-1", "state": "forged"})

        assert response.status_code == 400
        assert webmail_client.count("exchange_code_for_token") == 0

    @pytest.mark.asyncio
    async def test_token_exchange_failure(self, client, authentication, webmail_client):
        _, state = await authentication.start_authorization_code_flow()
        webmail_client.fail(
            "exchange_code_for_token",
            AuthExpiredError("invalid_grant", reauth_required=True),
        )

        response = await client.get("/auth/callback", params={"code": "code-1", "state": state})

        assert response.status_code == 502
        assert "조치" in response.text


class TestAuthStatus:
    """자격 증명 상태 조회"""

    @pytest.mark.asyncio
    async def test_unknown_account(self, client):
        response = await client.get(f"/auth/status/{ACCOUNT_EMAIL}")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_stored_account(self, client, vault):
        await store_valid_credential(vault)

        response = await client.get(f"/auth/status/{ACCOUNT_EMAIL}")

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == ACCOUNT_EMAIL
        assert body["has_refresh_token"]
