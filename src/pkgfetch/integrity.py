"""Subresource-integrity style digests (``sha512-<base64>``)."""
import base64
import hashlib
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

from pkgfetch.core.errors import IntegrityError

# Strongest first
ALGORITHMS = ("sha512", "sha384", "sha256", "sha1")


class Integrity(BaseModel):
    """One algorithm/digest pair."""

    model_config = ConfigDict(frozen=True)

    algorithm: str
    digest: str

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v not in ALGORITHMS:
            raise ValueError(f"algorithm must be one of {ALGORITHMS}, got: {v}")
        return v

    @classmethod
    def parse(cls, text: Union[str, "Integrity", None]) -> Optional["Integrity"]:
        """Parse an integrity string, keeping the strongest supported hash."""
        if text is None or isinstance(text, Integrity):
            return text
        entries = []
        for token in str(text).split():
            algorithm, sep, digest = token.partition("-")
            if sep and algorithm in ALGORITHMS and digest:
                entries.append(cls(algorithm=algorithm, digest=digest.split("?")[0]))
        if not entries:
            raise IntegrityError(f"Invalid integrity string: {text!r}")
        entries.sort(key=lambda e: ALGORITHMS.index(e.algorithm))
        return entries[0]

    @classmethod
    def from_bytes(cls, data: bytes, algorithm: str = "sha512") -> "Integrity":
        hasher = IntegrityHasher(algorithm)
        hasher.update(data)
        return hasher.result()

    @property
    def hexdigest(self) -> str:
        return base64.b64decode(self.digest).hex()

    def matches(self, other: Optional["Integrity"]) -> bool:
        return other is not None and self.algorithm == other.algorithm and self.digest == other.digest

    def __str__(self) -> str:
        return f"{self.algorithm}-{self.digest}"


class IntegrityHasher:
    """Incremental digest over a byte stream."""

    def __init__(self, algorithm: str = "sha512"):
        self.algorithm = algorithm
        self._hash = hashlib.new(algorithm)
        self.size = 0

    def update(self, chunk: bytes) -> None:
        self._hash.update(chunk)
        self.size += len(chunk)

    def result(self) -> Integrity:
        digest = base64.b64encode(self._hash.digest()).decode("ascii")
        return Integrity(algorithm=self.algorithm, digest=digest)


def check(data: bytes, expected: Union[str, Integrity]) -> Integrity:
    """Verify ``data`` against ``expected`` and return the matching digest."""
    wanted = Integrity.parse(expected)
    actual = Integrity.from_bytes(data, wanted.algorithm)
    if not wanted.matches(actual):
        raise IntegrityError(
            f"Integrity check failed: wanted {wanted} but got {actual}",
            expected=str(wanted),
            actual=str(actual),
        )
    return actual
