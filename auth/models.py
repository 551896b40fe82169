from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from auth.pkce import PkceContext


@dataclass(frozen=True)
class AuthorizationRequestState:
    state: str
    pkce: PkceContext | None
    redirect_uri: str
    return_url: str
    created_at: float

    def is_expired(self, now: float, ttl_seconds: float) -> bool:
        return now - self.created_at > ttl_seconds


@dataclass(frozen=True)
class TokenResponse:
    access_token: str
    token_type: str | None = None
    expires_in: int | None = None
    refresh_token: str | None = None
    scope: str | None = None
    raw: Mapping[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_payload(cls, payload: Any) -> "TokenResponse":
        if not isinstance(payload, dict):
            raise ValueError("Token response must be a JSON object.")

        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("Token response missing access_token.")

        expires_in = payload.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            expires_in = None

        token_type = payload.get("token_type")
        refresh_token = payload.get("refresh_token")
        scope = payload.get("scope")
        return cls(
            access_token=access_token,
            token_type=token_type if isinstance(token_type, str) else None,
            expires_in=int(expires_in) if expires_in is not None else None,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
            scope=scope if isinstance(scope, str) else None,
            raw=MappingProxyType(dict(payload)),
        )


@dataclass(frozen=True)
class UserIdentity:
    claims: Mapping[str, str]
    access_token: str
    issuer: str
    token_type: str | None = None
    expires_in: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "claims", MappingProxyType(dict(self.claims)))


@dataclass(frozen=True)
class AuthorizationChallenge:
    url: str
    state: str
    correlation: str


@dataclass(frozen=True)
class AuthenticationResult:
    identity: UserIdentity
    return_url: str
