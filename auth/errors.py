from __future__ import annotations

_BODY_LIMIT = 1000


def _truncate(body: str | None) -> str | None:
    if body is None or len(body) <= _BODY_LIMIT:
        return body
    return body[:_BODY_LIMIT] + "...<truncated>"


class OptionsValidationError(ValueError):
    pass


class OAuthError(RuntimeError):
    """Terminal failure of one authorization attempt."""

    code = "oauth_error"
    status_code = 400

    def to_payload(self) -> dict[str, str]:
        return {"error": self.code, "error_description": str(self)}


class StateMismatchError(OAuthError):
    code = "invalid_state"

    def __init__(self, message: str = "Unknown, expired or already used state.") -> None:
        super().__init__(message)


class MissingAuthorizationCodeError(OAuthError):
    code = "invalid_request"

    def __init__(self, message: str = "Callback is missing the authorization code.") -> None:
        super().__init__(message)


class ProviderDeniedAccessError(OAuthError):
    code = "access_denied"
    status_code = 403

    def __init__(self, error: str, error_description: str | None = None) -> None:
        message = f"Provider returned error {error!r}"
        if error_description:
            message = f"{message}: {error_description}"
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class _UpstreamError(OAuthError):
    status_code = 502
    prefix = "Upstream request failed"

    def __init__(self, detail: str, *, status: int | None = None, body: str | None = None) -> None:
        if status is not None:
            message = f"{self.prefix} with status {status}: {detail}"
        else:
            message = f"{self.prefix}: {detail}"
        super().__init__(message)
        self.status = status
        self.body = _truncate(body)


class TokenExchangeFailedError(_UpstreamError):
    code = "token_exchange_failed"
    prefix = "Token request failed"


class UserInfoFetchFailedError(_UpstreamError):
    code = "user_info_failed"
    prefix = "User information request failed"


class MalformedUserInfoError(OAuthError):
    code = "malformed_user_info"
    status_code = 502

    def __init__(self, body: str | None = None) -> None:
        super().__init__("User information response is not valid JSON.")
        self.body = _truncate(body)
