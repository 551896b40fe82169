"""Claim extraction from provider user-info documents.

A provider declares an ordered list of :class:`ClaimMapping` entries, each
pairing one claim type with a pure extractor. Extractors receive the parsed
user-info document and return a string or ``None``; they never raise. Running
the list over a document fills a :class:`ClaimsIdentity`, so a partial or
oddly shaped document yields fewer claims instead of a failed sign-in.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator

Extractor = Callable[[Any], "str | None"]


class ClaimTypes:
    SUBJECT = "sub"
    NAME = "name"
    EMAIL = "email"


@dataclass(frozen=True)
class Claim:
    type: str
    value: str
    issuer: str


@dataclass
class ClaimsIdentity:
    claims: list[Claim] = field(default_factory=list)

    def add_claim(self, claim: Claim) -> None:
        self.claims.append(claim)

    def find_first(self, claim_type: str) -> Claim | None:
        for claim in self.claims:
            if claim.type == claim_type:
                return claim
        return None

    def has_claim(self, claim_type: str) -> bool:
        return self.find_first(claim_type) is not None

    def to_dict(self) -> dict[str, str]:
        return {claim.type: claim.value for claim in self.claims}


def json_string(value: Any) -> str | None:
    """Return the canonical string form of a JSON scalar, or ``None``."""
    if isinstance(value, str):
        return value
    # bool is an int subclass; check it first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        # integral values render without a fraction or exponent
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return None


@dataclass(frozen=True)
class ClaimMapping:
    claim_type: str
    extractor: Extractor

    def run(self, document: Any) -> str | None:
        return self.extractor(document)


def _json_key(key: str) -> Extractor:
    def extract(document: Any) -> str | None:
        if not isinstance(document, dict):
            return None
        return json_string(document.get(key))

    return extract


def _json_sub_key(key: str, sub_key: str) -> Extractor:
    def extract(document: Any) -> str | None:
        if not isinstance(document, dict):
            return None
        return _json_key(sub_key)(document.get(key))

    return extract


class ClaimMappings:
    """Ordered, one-mapping-per-claim-type collection of extractors."""

    def __init__(self, mappings: list[ClaimMapping] | None = None) -> None:
        self._mappings: list[ClaimMapping] = []
        for mapping in mappings or []:
            self.add(mapping)

    def add(self, mapping: ClaimMapping) -> None:
        self.remove(mapping.claim_type)
        self._mappings.append(mapping)

    def map_custom_json(self, claim_type: str, extractor: Extractor) -> None:
        self.add(ClaimMapping(claim_type, extractor))

    def map_json_key(self, claim_type: str, key: str) -> None:
        self.add(ClaimMapping(claim_type, _json_key(key)))

    def map_json_sub_key(self, claim_type: str, key: str, sub_key: str) -> None:
        self.add(ClaimMapping(claim_type, _json_sub_key(key, sub_key)))

    def remove(self, claim_type: str) -> None:
        self._mappings = [m for m in self._mappings if m.claim_type != claim_type]

    def clear(self) -> None:
        self._mappings = []

    def copy(self) -> "ClaimMappings":
        return ClaimMappings(list(self._mappings))

    def claim_types(self) -> list[str]:
        return [mapping.claim_type for mapping in self._mappings]

    def __iter__(self) -> Iterator[ClaimMapping]:
        return iter(tuple(self._mappings))

    def __len__(self) -> int:
        return len(self._mappings)

    def apply(self, document: Any, identity: ClaimsIdentity, issuer: str) -> None:
        apply_mappings(self._mappings, document, identity, issuer)


def apply_mappings(
    mappings: Iterable[ClaimMapping],
    document: Any,
    identity: ClaimsIdentity,
    issuer: str,
) -> None:
    for mapping in mappings:
        value = mapping.run(document)
        if value:
            identity.add_claim(Claim(mapping.claim_type, value, issuer))
