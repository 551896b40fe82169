from __future__ import annotations

import json
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import asdict
from pathlib import Path

from auth.models import AuthorizationRequestState
from auth.pkce import PkceContext


class StateStore(ABC):
    """Correlation storage for in-flight authorization attempts.

    ``consume`` returns a record at most once; later calls with the same state
    return ``None``.
    """

    @abstractmethod
    async def save(self, record: AuthorizationRequestState) -> None:
        raise NotImplementedError

    @abstractmethod
    async def consume(self, state: str) -> AuthorizationRequestState | None:
        raise NotImplementedError

    @abstractmethod
    async def purge_expired(self, now: float, ttl_seconds: float) -> int:
        raise NotImplementedError


class MemoryStateStore(StateStore):
    def __init__(self) -> None:
        self._records: dict[str, AuthorizationRequestState] = {}

    async def save(self, record: AuthorizationRequestState) -> None:
        self._records[record.state] = record

    async def consume(self, state: str) -> AuthorizationRequestState | None:
        return self._records.pop(state, None)

    async def purge_expired(self, now: float, ttl_seconds: float) -> int:
        expired = [
            state
            for state, record in self._records.items()
            if record.is_expired(now, ttl_seconds)
        ]
        for state in expired:
            del self._records[state]
        return len(expired)

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, state: object) -> bool:
        return state in self._records


def _record_from_payload(payload: dict) -> AuthorizationRequestState:
    pkce = payload.get("pkce")
    return AuthorizationRequestState(
        state=payload["state"],
        pkce=PkceContext(**pkce) if pkce else None,
        redirect_uri=payload["redirect_uri"],
        return_url=payload["return_url"],
        created_at=payload["created_at"],
    )


class FileStateStore(StateStore):
    def __init__(self, path: str | Path = ".kick_state.json") -> None:
        self._path = Path(path)

    async def save(self, record: AuthorizationRequestState) -> None:
        all_records = self._read_all()
        all_records[record.state] = asdict(record)
        self._write_all(all_records)

    async def consume(self, state: str) -> AuthorizationRequestState | None:
        all_records = self._read_all()
        payload = all_records.pop(state, None)
        if payload is None:
            return None
        self._write_all(all_records)
        return _record_from_payload(payload)

    async def purge_expired(self, now: float, ttl_seconds: float) -> int:
        all_records = self._read_all()
        kept = {
            state: payload
            for state, payload in all_records.items()
            if now - payload.get("created_at", 0) <= ttl_seconds
        }
        removed = len(all_records) - len(kept)
        if removed:
            self._write_all(kept)
        return removed

    def _read_all(self) -> dict[str, dict]:
        if not self._path.exists():
            return {}

        raw = json.loads(self._path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise RuntimeError("State store file is invalid; expected top-level JSON object.")
        return raw

    def _write_all(self, payload: dict[str, dict]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(
            prefix=f"{self._path.name}.",
            suffix=".tmp",
            dir=self._path.parent,
        )
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
