from __future__ import annotations

import logging

LOGGER = logging.getLogger("kickauth")
APP_VERSION = "0.1.0"


class KickAuthenticationDefaults:
    AUTHENTICATION_SCHEME = "Kick"
    DISPLAY_NAME = "Kick"
    ISSUER = "Kick"
    CALLBACK_PATH = "/signin-kick"
    AUTHORIZATION_ENDPOINT = "https://id.kick.com/oauth/authorize"
    TOKEN_ENDPOINT = "https://id.kick.com/oauth/token"
    USER_INFORMATION_ENDPOINT = "https://api.kick.com/public/v1/users"
    SCOPE = "user:read"


class KickClaimTypes:
    PROFILE_PICTURE = "urn:kick:profilepicture"
