from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, TypeVar

import httpx
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from auth.handler import FailureHandler, OAuthHandler, SignIn
from auth.options import OAuthOptions
from auth.state_store import MemoryStateStore, StateStore

LOGGER = logging.getLogger("kickauth.builder")

OptionsT = TypeVar("OptionsT", bound=OAuthOptions)


@dataclass(frozen=True)
class AuthenticationScheme:
    name: str
    display_name: str
    handler: OAuthHandler


class AuthenticationBuilder:
    """Registry of remote authentication schemes for one application."""

    def __init__(
        self,
        *,
        state_store: StateStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        sign_in: SignIn | None = None,
        on_failure: FailureHandler | None = None,
    ) -> None:
        self.state_store = state_store or MemoryStateStore()
        self.http_client = http_client
        self.sign_in = sign_in
        self.on_failure = on_failure
        self._schemes: dict[str, AuthenticationScheme] = {}

    def add_oauth(
        self,
        scheme: str,
        display_name: str,
        options: OptionsT,
        configure: Callable[[OptionsT], None] | None = None,
    ) -> "AuthenticationBuilder":
        if scheme in self._schemes:
            raise ValueError(f"Scheme already exists: {scheme}")

        if configure is not None:
            configure(options)
        if not options.claims_issuer:
            options.claims_issuer = scheme

        configuration = options.freeze()
        callback_paths = {
            registered.handler.configuration.callback_path
            for registered in self._schemes.values()
        }
        if configuration.callback_path in callback_paths:
            raise ValueError(
                f"Callback path {configuration.callback_path} is already used by another scheme."
            )

        handler = OAuthHandler(
            scheme,
            configuration,
            state_store=self.state_store,
            http_client=self.http_client,
            sign_in=self.sign_in,
            on_failure=self.on_failure,
        )
        self._schemes[scheme] = AuthenticationScheme(scheme, display_name, handler)
        LOGGER.info(
            "Registered scheme=%s callback=%s scopes=%s",
            scheme,
            configuration.callback_path,
            configuration.scope,
        )
        return self

    @property
    def schemes(self) -> list[AuthenticationScheme]:
        return list(self._schemes.values())

    def get_handler(self, scheme: str) -> OAuthHandler:
        try:
            return self._schemes[scheme].handler
        except KeyError:
            raise KeyError(f"No authentication scheme registered as {scheme!r}.") from None

    async def challenge(self, request: Request, scheme: str, *, return_url: str = "/") -> Response:
        return await self.get_handler(scheme).challenge_response(request, return_url)

    async def aclose(self) -> None:
        if self.http_client is not None:
            await self.http_client.aclose()

    def routes(self) -> list[Route]:
        routes: list[Route] = []
        for registered in self._schemes.values():
            routes.extend(registered.handler.routes())
        return routes
