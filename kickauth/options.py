from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar

from auth.claims import ClaimMappings, ClaimTypes, json_string
from auth.options import OAuthOptions

from .constants import KickAuthenticationDefaults, KickClaimTypes


def get_data(user: Any, key: str) -> str | None:
    """Read ``key`` from the first entry of the ``data`` array of a Kick user payload."""
    if not isinstance(user, dict):
        return None
    data = user.get("data")
    if not isinstance(data, list) or not data:
        return None
    first = data[0]
    if not isinstance(first, dict):
        return None
    return json_string(first.get(key))


def _data_field(key: str):
    return lambda user: get_data(user, key)


def default_claim_mappings() -> ClaimMappings:
    mappings = ClaimMappings()
    mappings.map_custom_json(ClaimTypes.SUBJECT, _data_field("user_id"))
    mappings.map_custom_json(ClaimTypes.NAME, _data_field("name"))
    mappings.map_custom_json(ClaimTypes.EMAIL, _data_field("email"))
    mappings.map_custom_json(KickClaimTypes.PROFILE_PICTURE, _data_field("profile_picture"))
    return mappings


@dataclass
class KickAuthenticationOptions(OAuthOptions):
    # Kick only accepts authorization requests carrying an S256 challenge.
    pkce_required: ClassVar[bool] = True

    authorization_endpoint: str = KickAuthenticationDefaults.AUTHORIZATION_ENDPOINT
    token_endpoint: str = KickAuthenticationDefaults.TOKEN_ENDPOINT
    user_info_endpoint: str = KickAuthenticationDefaults.USER_INFORMATION_ENDPOINT
    callback_path: str = KickAuthenticationDefaults.CALLBACK_PATH
    scopes: list[str] = field(default_factory=lambda: [KickAuthenticationDefaults.SCOPE])
    claims_issuer: str = KickAuthenticationDefaults.ISSUER
    use_pkce: bool = True
    claim_mappings: ClaimMappings = field(default_factory=default_claim_mappings)
