import urllib.parse

import httpx
import pytest

from auth.errors import (
    MalformedUserInfoError,
    TokenExchangeFailedError,
    UserInfoFetchFailedError,
)
from auth.handler import OAuthHandler
from auth.models import TokenResponse
from auth.options import OAuthOptions
from tests.oauth_helpers import TOKEN_URL, USER_INFO_JSON, USER_INFO_URL


def _form(request: httpx.Request) -> dict[str, str]:
    return dict(urllib.parse.parse_qsl(request.content.decode()))


@pytest.mark.asyncio
async def test_exchange_code_success(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(
        url=TOKEN_URL,
        method="POST",
        json={"access_token": "access-1", "token_type": "Bearer", "expires_in": 7200},
    )
    handler = OAuthHandler("Kick", kick_configuration)

    token = await handler.exchange_code(
        code="code123",
        redirect_uri="https://app.example.com/signin-kick",
        code_verifier="verifier123",
    )

    assert token.access_token == "access-1"
    assert token.token_type == "Bearer"
    assert token.expires_in == 7200

    form = _form(httpx_mock.get_request())
    assert form == {
        "grant_type": "authorization_code",
        "code": "code123",
        "redirect_uri": "https://app.example.com/signin-kick",
        "client_id": "test_client_id",
        "client_secret": "test_client_secret",
        "code_verifier": "verifier123",
    }


@pytest.mark.asyncio
async def test_exchange_code_omits_empty_client_secret(httpx_mock, kick_options) -> None:
    kick_options.client_secret = ""
    httpx_mock.add_response(url=TOKEN_URL, method="POST", json={"access_token": "a"})
    handler = OAuthHandler("Kick", kick_options.freeze())

    await handler.exchange_code(code="c", redirect_uri="https://x/cb", code_verifier="v")

    assert "client_secret" not in _form(httpx_mock.get_request())


@pytest.mark.asyncio
async def test_exchange_code_requires_verifier_when_pkce(kick_configuration) -> None:
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(TokenExchangeFailedError, match="verifier"):
        await handler.exchange_code(code="c", redirect_uri="https://x/cb", code_verifier=None)


@pytest.mark.asyncio
async def test_exchange_code_without_pkce_sends_no_verifier(httpx_mock) -> None:
    options = OAuthOptions(
        client_id="client",
        authorization_endpoint="https://idp.example.com/authorize",
        token_endpoint="https://idp.example.com/token",
        user_info_endpoint="https://idp.example.com/userinfo",
        use_pkce=False,
    )
    httpx_mock.add_response(url="https://idp.example.com/token", json={"access_token": "a"})
    handler = OAuthHandler("Generic", options.freeze())

    await handler.exchange_code(code="c", redirect_uri="https://x/cb")

    assert "code_verifier" not in _form(httpx_mock.get_request())


@pytest.mark.asyncio
async def test_exchange_code_error_status(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(url=TOKEN_URL, method="POST", status_code=401, text="unauthorized")
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(TokenExchangeFailedError, match="Token request failed") as info:
        await handler.exchange_code(code="bad", redirect_uri="https://x/cb", code_verifier="v")

    assert info.value.status == 401
    assert info.value.body == "unauthorized"
    assert info.value.code == "token_exchange_failed"


@pytest.mark.asyncio
async def test_exchange_code_missing_access_token(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(url=TOKEN_URL, method="POST", json={"token_type": "Bearer"})
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(TokenExchangeFailedError, match="access_token") as info:
        await handler.exchange_code(code="c", redirect_uri="https://x/cb", code_verifier="v")

    assert info.value.status == 200


@pytest.mark.asyncio
async def test_exchange_code_non_json(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(url=TOKEN_URL, method="POST", text="<html>oops</html>")
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(TokenExchangeFailedError, match="not valid JSON"):
        await handler.exchange_code(code="c", redirect_uri="https://x/cb", code_verifier="v")


@pytest.mark.asyncio
async def test_exchange_code_timeout(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_exception(httpx.ReadTimeout("Read timed out"))
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(TokenExchangeFailedError, match="timed out") as info:
        await handler.exchange_code(code="c", redirect_uri="https://x/cb", code_verifier="v")

    assert info.value.status is None


@pytest.mark.asyncio
async def test_exchange_code_uses_injected_client(kick_configuration) -> None:
    seen: list[httpx.Request] = []

    async def handler_fn(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"access_token": "injected"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler_fn)) as client:
        handler = OAuthHandler("Kick", kick_configuration, http_client=client)
        token = await handler.exchange_code(code="c", redirect_uri="https://x/cb", code_verifier="v")
        assert not client.is_closed

    assert token.access_token == "injected"
    assert str(seen[0].url) == TOKEN_URL


@pytest.mark.asyncio
async def test_fetch_user_info_sends_bearer(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(url=USER_INFO_URL, method="GET", json=USER_INFO_JSON)
    handler = OAuthHandler("Kick", kick_configuration)

    document = await handler.fetch_user_info("access-1")

    assert document == USER_INFO_JSON
    assert httpx_mock.get_request().headers["authorization"] == "Bearer access-1"


@pytest.mark.asyncio
async def test_fetch_user_info_error_status(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(url=USER_INFO_URL, method="GET", status_code=403, text="forbidden")
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(UserInfoFetchFailedError) as info:
        await handler.fetch_user_info("access-1")

    assert info.value.status == 403
    assert info.value.body == "forbidden"


@pytest.mark.asyncio
async def test_fetch_user_info_transport_error(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_exception(httpx.ConnectError("connection refused"))
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(UserInfoFetchFailedError, match="transport error"):
        await handler.fetch_user_info("access-1")


@pytest.mark.asyncio
async def test_fetch_user_info_timeout(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_exception(httpx.ReadTimeout("Read timed out"))
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(UserInfoFetchFailedError, match="timed out") as info:
        await handler.fetch_user_info("access-1")

    assert info.value.status is None
    assert info.value.body is None


@pytest.mark.asyncio
async def test_fetch_user_info_malformed(httpx_mock, kick_configuration) -> None:
    httpx_mock.add_response(url=USER_INFO_URL, method="GET", text="not json")
    handler = OAuthHandler("Kick", kick_configuration)

    with pytest.raises(MalformedUserInfoError) as info:
        await handler.fetch_user_info("access-1")

    assert info.value.body == "not json"


def test_create_identity(kick_configuration) -> None:
    handler = OAuthHandler("Kick", kick_configuration)
    token = TokenResponse(access_token="tok", token_type="Bearer", expires_in=60)

    identity = handler.create_identity(
        {"data": [{"user_id": 98765, "name": "numeric_user"}]},
        token,
    )

    assert dict(identity.claims) == {"sub": "98765", "name": "numeric_user"}
    assert identity.access_token == "tok"
    assert identity.issuer == "Kick"
    with pytest.raises(TypeError):
        identity.claims["email"] = "x"  # type: ignore[index]


def test_token_response_from_payload_ignores_bad_optional_fields() -> None:
    token = TokenResponse.from_payload(
        {"access_token": "a", "expires_in": "soon", "token_type": 3, "refresh_token": "r"}
    )

    assert token.expires_in is None
    assert token.token_type is None
    assert token.refresh_token == "r"
    assert token.raw["expires_in"] == "soon"
