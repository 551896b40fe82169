from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar

from pydantic import AnyHttpUrl

from auth.claims import ClaimMapping, ClaimMappings
from auth.errors import OptionsValidationError


def _dedupe(scopes: list[str]) -> tuple[str, ...]:
    seen: list[str] = []
    for scope in scopes:
        scope = scope.strip()
        if scope and scope not in seen:
            seen.append(scope)
    return tuple(seen)


@dataclass(frozen=True)
class ProviderConfiguration:
    """Validated, read-only view of :class:`OAuthOptions` shared by all attempts."""

    client_id: str
    client_secret: str
    authorization_endpoint: str
    token_endpoint: str
    user_info_endpoint: str
    callback_path: str
    scopes: tuple[str, ...]
    issuer: str
    use_pkce: bool
    claim_mappings: tuple[ClaimMapping, ...]
    public_url: str | None = None
    backchannel_timeout: float = 60.0
    remote_authentication_timeout: float = 900.0
    state_secret: str | None = None

    @property
    def scope(self) -> str:
        return " ".join(self.scopes)


@dataclass
class OAuthOptions:
    """Mutable options handed to the registration callback.

    Subclasses set provider defaults; the host overrides whatever it needs
    (at minimum ``client_id``) before :meth:`validate` runs once at startup.
    """

    pkce_required: ClassVar[bool] = False

    client_id: str = ""
    client_secret: str = ""
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    user_info_endpoint: str = ""
    callback_path: str = "/signin-oauth"
    scopes: list[str] = field(default_factory=list)
    claims_issuer: str = ""
    use_pkce: bool = True
    claim_mappings: ClaimMappings = field(default_factory=ClaimMappings)
    public_url: str | None = None
    backchannel_timeout: float = 60.0
    remote_authentication_timeout: float = 900.0
    state_secret: str | None = None

    def add_scope(self, scope: str) -> None:
        if scope not in self.scopes:
            self.scopes.append(scope)

    def validate(self) -> None:
        if not self.client_id.strip():
            raise OptionsValidationError("client_id must be provided.")

        endpoints = {
            "authorization_endpoint": self.authorization_endpoint,
            "token_endpoint": self.token_endpoint,
            "user_info_endpoint": self.user_info_endpoint,
        }
        if self.public_url:
            endpoints["public_url"] = self.public_url
        for name, value in endpoints.items():
            if not value:
                raise OptionsValidationError(f"{name} must be provided.")
            try:
                AnyHttpUrl(value)
            except ValueError as error:
                raise OptionsValidationError(
                    f"{name} must be an absolute http(s) URL: {value!r}"
                ) from error

        if not self.callback_path.startswith("/"):
            raise OptionsValidationError("callback_path must start with '/'.")
        if self.pkce_required and not self.use_pkce:
            raise OptionsValidationError(
                f"{type(self).__name__} requires PKCE; use_pkce cannot be disabled."
            )
        if self.backchannel_timeout <= 0:
            raise OptionsValidationError("backchannel_timeout must be positive.")
        if self.remote_authentication_timeout <= 0:
            raise OptionsValidationError("remote_authentication_timeout must be positive.")

    def freeze(self) -> ProviderConfiguration:
        self.validate()
        return ProviderConfiguration(
            client_id=self.client_id,
            client_secret=self.client_secret,
            authorization_endpoint=self.authorization_endpoint,
            token_endpoint=self.token_endpoint,
            user_info_endpoint=self.user_info_endpoint,
            callback_path=self.callback_path,
            scopes=_dedupe(self.scopes),
            issuer=self.claims_issuer,
            use_pkce=self.use_pkce,
            claim_mappings=tuple(self.claim_mappings),
            public_url=self.public_url.rstrip("/") if self.public_url else None,
            backchannel_timeout=self.backchannel_timeout,
            remote_authentication_timeout=self.remote_authentication_timeout,
            state_secret=self.state_secret,
        )
