from __future__ import annotations

import contextlib
import os

import httpx
import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from auth import signed_token
from auth.builder import AuthenticationBuilder
from auth.session import CookieSignIn
from auth.state_store import FileStateStore, MemoryStateStore
from kickauth.constants import APP_VERSION, LOGGER, KickAuthenticationDefaults
from kickauth.env import (
    get_env_float,
    get_env_int,
    load_env,
    parse_scopes_env,
    setup_logging,
    validate_env,
)
from kickauth.extensions import add_kick
from kickauth.options import KickAuthenticationOptions


def configure_kick_from_env(options: KickAuthenticationOptions) -> None:
    options.client_id = os.getenv("KICK_CLIENT_ID", "").strip()
    options.client_secret = os.getenv("KICK_CLIENT_SECRET", "").strip()
    options.public_url = os.getenv("KICK_PUBLIC_URL", "").strip() or None
    options.state_secret = os.getenv("KICK_STATE_SECRET", "").strip() or None
    options.backchannel_timeout = get_env_float("KICK_HTTP_TIMEOUT", options.backchannel_timeout)

    callback_path = os.getenv("KICK_CALLBACK_PATH", "").strip()
    if callback_path:
        options.callback_path = callback_path
    for scope in parse_scopes_env("KICK_SCOPES"):
        options.add_scope(scope)


def build_state_store():
    path = os.getenv("KICK_STATE_STORE_PATH", "").strip()
    if path:
        return FileStateStore(path)
    return MemoryStateStore()


def create_app() -> Starlette:
    load_env()
    setup_logging()
    validate_env()

    session_key = signed_token.derive_key(
        os.getenv("KICK_STATE_SECRET", "").strip() or os.getenv("KICK_CLIENT_SECRET", ""),
        purpose="session",
    )
    sign_in = CookieSignIn(session_key)
    http_client = httpx.AsyncClient(timeout=get_env_float("KICK_HTTP_TIMEOUT", 60.0))
    builder = AuthenticationBuilder(
        state_store=build_state_store(),
        http_client=http_client,
        sign_in=sign_in,
    )
    add_kick(builder, configure=configure_kick_from_env)
    scheme = KickAuthenticationDefaults.AUTHENTICATION_SCHEME

    async def login_route(request: Request) -> Response:
        return_url = request.query_params.get("return_url", "/me")
        return await builder.challenge(request, scheme, return_url=return_url)

    async def me_route(request: Request) -> Response:
        session = sign_in.read(request)
        if session is None:
            return JSONResponse({"authenticated": False}, status_code=401)
        return JSONResponse(
            {
                "authenticated": True,
                "issuer": session.get("iss"),
                "claims": session.get("claims", {}),
            }
        )

    async def logout_route(request: Request) -> Response:
        del request
        return sign_in.sign_out(RedirectResponse(url="/", status_code=302))

    async def health_route(request: Request) -> Response:
        del request
        return JSONResponse(
            {
                "status": "ok",
                "version": APP_VERSION,
                "schemes": [registered.name for registered in builder.schemes],
            }
        )

    routes = [
        Route("/login", login_route, methods=["GET"]),
        Route("/logout", logout_route, methods=["GET", "POST"]),
        Route("/me", me_route, methods=["GET"]),
        Route("/health", health_route, methods=["GET"]),
        *builder.routes(),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette):
        yield
        await builder.aclose()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.auth = builder
    app.state.sign_in = sign_in
    LOGGER.info("Kick sign-in ready at /login")
    return app


def main() -> None:
    host = os.getenv("KICK_HOST", "127.0.0.1")
    port = get_env_int("KICK_PORT", 8000)
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
