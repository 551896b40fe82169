from __future__ import annotations

import time
from typing import Callable

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from auth import signed_token
from auth.models import UserIdentity

DEFAULT_SESSION_COOKIE = ".kickauth.session"


class CookieSignIn:
    """Establish a session by signing the identity's claims into a cookie.

    Only claims are stored; the provider access token stays out of the
    browser.
    """

    def __init__(
        self,
        key: str,
        *,
        cookie_name: str = DEFAULT_SESSION_COOKIE,
        max_age: int = 14 * 24 * 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._key = key
        self.cookie_name = cookie_name
        self.max_age = max_age
        self._clock = clock

    async def __call__(self, request: Request, identity: UserIdentity, return_url: str) -> Response:
        token = signed_token.encode(
            {
                "iss": identity.issuer,
                "claims": dict(identity.claims),
                "iat": self._clock(),
            },
            self._key,
        )
        response = RedirectResponse(url=return_url, status_code=302)
        response.set_cookie(
            self.cookie_name,
            token,
            max_age=self.max_age,
            secure=request.url.scheme == "https",
            httponly=True,
            samesite="lax",
        )
        return response

    def read(self, request: Request) -> dict | None:
        token = request.cookies.get(self.cookie_name)
        if not token:
            return None
        try:
            payload = signed_token.decode(token, self._key)
        except (signed_token.InvalidSignedTokenError, ValueError):
            return None
        if self._clock() - payload.get("iat", 0) > self.max_age:
            return None
        return payload

    def sign_out(self, response: Response) -> Response:
        response.delete_cookie(self.cookie_name)
        return response
