"""Authorization-code + PKCE exchange for a single remote provider.

One :class:`OAuthHandler` serves every attempt for its scheme. An attempt is
two independent request/response cycles (challenge, callback) correlated only
through the :class:`~auth.state_store.StateStore` record and a signed
correlation cookie, so either cycle may run on any worker.

Attempt lifecycle::

    IDLE -> CHALLENGE_ISSUED -> CODE_RECEIVED -> TOKEN_EXCHANGED
         -> USER_INFO_FETCHED -> COMPLETED

A saved state record is the CHALLENGE_ISSUED marker; the callback cycle
resumes the attempt from there. Any :class:`~auth.errors.OAuthError` moves
the attempt to ``FAILED``. Nothing is retried here.
"""

from __future__ import annotations

import enum
import logging
import secrets
import time
import urllib.parse
from typing import Any, Awaitable, Callable, Mapping

import httpx
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route

from auth import pkce, signed_token
from auth.claims import ClaimsIdentity, apply_mappings
from auth.errors import (
    MalformedUserInfoError,
    MissingAuthorizationCodeError,
    OAuthError,
    ProviderDeniedAccessError,
    StateMismatchError,
    TokenExchangeFailedError,
    UserInfoFetchFailedError,
)
from auth.models import (
    AuthenticationResult,
    AuthorizationChallenge,
    AuthorizationRequestState,
    TokenResponse,
    UserIdentity,
)
from auth.options import ProviderConfiguration
from auth.state_store import MemoryStateStore, StateStore
from auth.urls import append_query_params, build_redirect_uri, is_local_return_url

LOGGER = logging.getLogger("kickauth.oauth")

SignIn = Callable[[Request, UserIdentity, str], Awaitable[Response]]
FailureHandler = Callable[[Request, OAuthError], Awaitable[Response]]

_DETAIL_LIMIT = 200


class AttemptState(enum.Enum):
    IDLE = "idle"
    CHALLENGE_ISSUED = "challenge_issued"
    CODE_RECEIVED = "code_received"
    TOKEN_EXCHANGED = "token_exchanged"
    USER_INFO_FETCHED = "user_info_fetched"
    COMPLETED = "completed"
    FAILED = "failed"


_NEXT_STATE = {
    AttemptState.IDLE: AttemptState.CHALLENGE_ISSUED,
    AttemptState.CHALLENGE_ISSUED: AttemptState.CODE_RECEIVED,
    AttemptState.CODE_RECEIVED: AttemptState.TOKEN_EXCHANGED,
    AttemptState.TOKEN_EXCHANGED: AttemptState.USER_INFO_FETCHED,
    AttemptState.USER_INFO_FETCHED: AttemptState.COMPLETED,
}


class AuthorizationAttempt:
    def __init__(self, state: AttemptState = AttemptState.IDLE) -> None:
        self.state = state

    @property
    def is_terminal(self) -> bool:
        return self.state in (AttemptState.COMPLETED, AttemptState.FAILED)

    def advance(self, target: AttemptState) -> None:
        if _NEXT_STATE.get(self.state) is not target:
            raise RuntimeError(
                f"Invalid attempt transition {self.state.value} -> {target.value}."
            )
        self.state = target

    def fail(self) -> None:
        if self.is_terminal:
            raise RuntimeError(f"Attempt already {self.state.value}.")
        self.state = AttemptState.FAILED


def _mask(value: str) -> str:
    return f"{value[:6]}****"


def _detail(response: httpx.Response) -> str:
    text = response.text.strip()
    if not text:
        return response.reason_phrase or "empty response body"
    return text[:_DETAIL_LIMIT]


async def default_failure_response(request: Request, error: OAuthError) -> Response:
    del request
    return JSONResponse(error.to_payload(), status_code=error.status_code)


class OAuthHandler:
    def __init__(
        self,
        scheme: str,
        configuration: ProviderConfiguration,
        *,
        state_store: StateStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        sign_in: SignIn | None = None,
        on_failure: FailureHandler | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.scheme = scheme
        self.configuration = configuration
        self.state_store = state_store or MemoryStateStore()
        self._http_client = http_client
        self._sign_in = sign_in
        self._on_failure = on_failure or default_failure_response
        self._clock = clock
        self.correlation_cookie = f".kickauth.correlation.{scheme}"
        self._correlation_key = configuration.state_secret or signed_token.derive_key(
            configuration.client_secret or configuration.client_id
        )

    # -- challenge -------------------------------------------------------------

    def request_base_url(self, request: Request) -> str:
        # root_path carries any Mount prefix; base_url only knows the top-level app
        root_path = request.scope.get("root_path", "")
        return str(request.base_url.replace(path=root_path.rstrip("/") + "/"))

    def redirect_uri(self, base_url: str) -> str:
        return build_redirect_uri(
            self.configuration.public_url or base_url,
            self.configuration.callback_path,
        )

    def correlation_cookie_path(self, redirect_uri: str) -> str:
        return urllib.parse.urlparse(redirect_uri).path or "/"

    def build_authorization_url(
        self,
        *,
        redirect_uri: str,
        state: str,
        pkce_context: pkce.PkceContext | None,
    ) -> str:
        config = self.configuration
        query = {
            "response_type": "code",
            "client_id": config.client_id,
            "redirect_uri": redirect_uri,
            "scope": config.scope,
            "state": state,
        }
        if pkce_context is not None:
            query["code_challenge"] = pkce_context.challenge
            query["code_challenge_method"] = pkce_context.method
        return append_query_params(config.authorization_endpoint, query)

    async def challenge(self, *, base_url: str, return_url: str = "/") -> AuthorizationChallenge:
        now = self._clock()
        await self.state_store.purge_expired(now, self.configuration.remote_authentication_timeout)

        if not is_local_return_url(return_url):
            LOGGER.warning("Ignoring non-local return URL for scheme=%s", self.scheme)
            return_url = "/"

        state = secrets.token_urlsafe(32)
        pkce_context = pkce.generate() if self.configuration.use_pkce else None
        redirect_uri = self.redirect_uri(base_url)

        await self.state_store.save(
            AuthorizationRequestState(
                state=state,
                pkce=pkce_context,
                redirect_uri=redirect_uri,
                return_url=return_url,
                created_at=now,
            )
        )
        LOGGER.info("Issued challenge scheme=%s state=%s", self.scheme, _mask(state))

        return AuthorizationChallenge(
            url=self.build_authorization_url(
                redirect_uri=redirect_uri,
                state=state,
                pkce_context=pkce_context,
            ),
            state=state,
            correlation=signed_token.encode({"state": state}, self._correlation_key),
        )

    async def challenge_response(self, request: Request, return_url: str = "/") -> Response:
        base_url = self.request_base_url(request)
        redirect_uri = self.redirect_uri(base_url)
        challenge = await self.challenge(base_url=base_url, return_url=return_url)
        response = RedirectResponse(url=challenge.url, status_code=302)
        response.set_cookie(
            self.correlation_cookie,
            challenge.correlation,
            max_age=int(self.configuration.remote_authentication_timeout),
            path=self.correlation_cookie_path(redirect_uri),
            secure=redirect_uri.startswith("https://"),
            httponly=True,
            samesite="lax",
        )
        return response

    # -- callback --------------------------------------------------------------

    def _check_correlation(self, state: str, correlation: str | None) -> None:
        if not correlation:
            raise StateMismatchError("Correlation cookie is missing.")
        try:
            payload = signed_token.decode(correlation, self._correlation_key)
        except (signed_token.InvalidSignedTokenError, ValueError) as error:
            raise StateMismatchError("Correlation cookie is invalid.") from error
        if payload.get("state") != state:
            raise StateMismatchError("State does not match the correlation cookie.")

    async def _consume_state(
        self, state: str | None, correlation: str | None
    ) -> AuthorizationRequestState:
        if not state:
            raise StateMismatchError("Callback is missing the state parameter.")
        self._check_correlation(state, correlation)

        record = await self.state_store.consume(state)
        if record is None or record.state != state:
            raise StateMismatchError()
        if record.is_expired(self._clock(), self.configuration.remote_authentication_timeout):
            raise StateMismatchError("Authorization state expired.")
        return record

    async def authenticate_callback(
        self,
        params: Mapping[str, str],
        *,
        correlation: str | None,
    ) -> AuthenticationResult:
        attempt = AuthorizationAttempt(AttemptState.CHALLENGE_ISSUED)
        state = params.get("state")
        try:
            record = await self._consume_state(state, correlation)

            error = params.get("error")
            if error:
                raise ProviderDeniedAccessError(error, params.get("error_description"))

            code = params.get("code")
            if not code:
                raise MissingAuthorizationCodeError()
            attempt.advance(AttemptState.CODE_RECEIVED)

            token = await self.exchange_code(
                code=code,
                redirect_uri=record.redirect_uri,
                code_verifier=record.pkce.verifier if record.pkce else None,
            )
            attempt.advance(AttemptState.TOKEN_EXCHANGED)

            document = await self.fetch_user_info(token.access_token)
            attempt.advance(AttemptState.USER_INFO_FETCHED)

            identity = self.create_identity(document, token)
            attempt.advance(AttemptState.COMPLETED)
        except OAuthError as error:
            attempt.fail()
            LOGGER.warning(
                "Authentication failed scheme=%s state=%s error=%s: %s",
                self.scheme,
                _mask(state or ""),
                error.code,
                error,
            )
            raise

        LOGGER.info(
            "Authenticated scheme=%s claims=%s",
            self.scheme,
            sorted(identity.claims),
        )
        return AuthenticationResult(identity=identity, return_url=record.return_url)

    async def handle_callback(self, request: Request) -> Response:
        try:
            result = await self.authenticate_callback(
                request.query_params,
                correlation=request.cookies.get(self.correlation_cookie),
            )
        except OAuthError as error:
            response = await self._on_failure(request, error)
        except Exception:
            LOGGER.exception("Callback failed unexpectedly scheme=%s", self.scheme)
            response = JSONResponse(
                {
                    "error": "server_error",
                    "error_description": "Authentication could not be completed.",
                },
                status_code=500,
            )
        else:
            if self._sign_in is None:
                response = RedirectResponse(url=result.return_url, status_code=302)
            else:
                response = await self._sign_in(request, result.identity, result.return_url)

        redirect_uri = self.redirect_uri(self.request_base_url(request))
        response.delete_cookie(
            self.correlation_cookie,
            path=self.correlation_cookie_path(redirect_uri),
        )
        return response

    def routes(self) -> list[Route]:
        return [
            Route(
                self.configuration.callback_path,
                self.handle_callback,
                methods=["GET"],
                name=f"{self.scheme}-callback",
            )
        ]

    # -- back-channel ----------------------------------------------------------

    async def exchange_code(
        self,
        *,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> TokenResponse:
        config = self.configuration
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": config.client_id,
        }
        if config.client_secret:
            payload["client_secret"] = config.client_secret
        if config.use_pkce:
            if not code_verifier:
                raise TokenExchangeFailedError("PKCE code verifier is missing.")
            payload["code_verifier"] = code_verifier

        own_client = self._http_client is None
        http_client = self._http_client or httpx.AsyncClient(timeout=config.backchannel_timeout)
        try:
            response = await http_client.post(
                config.token_endpoint,
                data=payload,
                headers={"Accept": "application/json"},
                timeout=config.backchannel_timeout,
            )
        except httpx.TimeoutException as error:
            raise TokenExchangeFailedError("request timed out") from error
        except httpx.HTTPError as error:
            raise TokenExchangeFailedError(f"transport error: {error}") from error
        finally:
            if own_client:
                await http_client.aclose()

        if not response.is_success:
            raise TokenExchangeFailedError(
                _detail(response),
                status=response.status_code,
                body=response.text,
            )

        try:
            token_payload = response.json()
        except ValueError as error:
            raise TokenExchangeFailedError(
                "Token response is not valid JSON.",
                status=response.status_code,
                body=response.text,
            ) from error

        try:
            return TokenResponse.from_payload(token_payload)
        except ValueError as error:
            raise TokenExchangeFailedError(
                str(error),
                status=response.status_code,
                body=response.text,
            ) from error

    async def fetch_user_info(self, access_token: str) -> Any:
        config = self.configuration
        own_client = self._http_client is None
        http_client = self._http_client or httpx.AsyncClient(timeout=config.backchannel_timeout)
        try:
            response = await http_client.get(
                config.user_info_endpoint,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Accept": "application/json",
                },
                timeout=config.backchannel_timeout,
            )
        except httpx.TimeoutException as error:
            raise UserInfoFetchFailedError("request timed out") from error
        except httpx.HTTPError as error:
            raise UserInfoFetchFailedError(f"transport error: {error}") from error
        finally:
            if own_client:
                await http_client.aclose()

        if not response.is_success:
            raise UserInfoFetchFailedError(
                _detail(response),
                status=response.status_code,
                body=response.text,
            )

        try:
            return response.json()
        except ValueError as error:
            raise MalformedUserInfoError(response.text) from error

    def create_identity(self, document: Any, token: TokenResponse) -> UserIdentity:
        identity = ClaimsIdentity()
        apply_mappings(
            self.configuration.claim_mappings,
            document,
            identity,
            self.configuration.issuer,
        )
        return UserIdentity(
            claims=identity.to_dict(),
            access_token=token.access_token,
            issuer=self.configuration.issuer,
            token_type=token.token_type,
            expires_in=token.expires_in,
        )
