from __future__ import annotations

import urllib.parse


def is_local_return_url(url: str) -> bool:
    if not url.startswith("/") or url.startswith("//") or url.startswith("/\\"):
        return False
    parsed = urllib.parse.urlparse(url)
    return not parsed.scheme and not parsed.netloc


def build_redirect_uri(base_url: str, callback_path: str) -> str:
    return f"{base_url.rstrip('/')}/{callback_path.lstrip('/')}"


def append_query_params(url: str, params: dict[str, str]) -> str:
    parsed = urllib.parse.urlparse(url)
    existing = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)
    for key, value in params.items():
        existing[key] = [value]

    new_query = urllib.parse.urlencode(existing, doseq=True)
    return urllib.parse.urlunparse(parsed._replace(query=new_query))
