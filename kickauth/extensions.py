from __future__ import annotations

from typing import Callable

from auth.builder import AuthenticationBuilder

from .constants import KickAuthenticationDefaults
from .options import KickAuthenticationOptions

Configure = Callable[[KickAuthenticationOptions], None]


def add_kick(
    builder: AuthenticationBuilder,
    scheme: str = KickAuthenticationDefaults.AUTHENTICATION_SCHEME,
    caption: str = KickAuthenticationDefaults.DISPLAY_NAME,
    configure: Configure | None = None,
) -> AuthenticationBuilder:
    """Register Kick sign-in on ``builder``.

    ``configure`` receives a fresh :class:`KickAuthenticationOptions` populated
    with the Kick defaults and may override any of them; it must at least set
    ``client_id``. Disabling PKCE is rejected at registration time.
    """
    return builder.add_oauth(scheme, caption, KickAuthenticationOptions(), configure)
