"""Listing (fingerprint manifest) and cache decision models."""
from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional


CacheState = Literal["absent", "stale", "fresh"]

HEX_DIGITS = "0123456789abcdef"


class ListingEntry(BaseModel):
    """Single `<path> <digest>` line of a listing."""
    path: str  # "/"-prefixed, forward slashes, relative to the input dir
    digest: str  # lowercase hex

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Ensure path is rooted and fits on one line."""
        if not v.startswith('/') or len(v) < 2:
            raise ValueError('path must start with "/" and name a file')
        if '\n' in v or '\r' in v:
            raise ValueError('path must not contain line breaks')
        return v

    @field_validator('digest')
    @classmethod
    def validate_digest(cls, v: str) -> str:
        """Ensure digest is a non-empty hex string."""
        v = v.lower()
        if not v or not all(c in HEX_DIGITS for c in v):
            raise ValueError('digest must be a hex string')
        return v


class Manifest(BaseModel):
    """Full listing, kept sorted by path."""
    entries: list[ListingEntry] = Field(default_factory=list)

    @classmethod
    def from_fingerprints(cls, fingerprints: dict[str, str], exclude: Optional[str] = None) -> "Manifest":
        entries = [
            ListingEntry(path=path, digest=digest)
            for path, digest in sorted(fingerprints.items())
            if path != exclude
        ]
        return cls(entries=entries)

    def as_fingerprints(self) -> dict[str, str]:
        return {entry.path: entry.digest for entry in self.entries}


class FingerprintDiff(BaseModel):
    """Paths that differ between the current input tree and an archived listing."""
    added: list[str] = Field(default_factory=list)  # in input, not in listing
    removed: list[str] = Field(default_factory=list)  # in listing, not in input
    changed: list[str] = Field(default_factory=list)  # digest differs

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)


class CacheDecision(BaseModel):
    """Outcome of comparing an input tree with the listing in the output archive."""
    state: CacheState
    current: dict[str, str] = Field(default_factory=dict)
    previous: Optional[dict[str, str]] = None
    diff: Optional[FingerprintDiff] = None
    reason: str = ""

    @property
    def needs_build(self) -> bool:
        return self.state != "fresh"
