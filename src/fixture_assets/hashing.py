"""
Content digests for asset integrity checks.

A digest is written as ``<algorithm>:<hex>`` (``sha256:9f86d0...``). A bare
hex string is read as SHA-256.
"""

import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import aiofiles

DEFAULT_ALGORITHM = "sha256"
DEFAULT_CHUNK_SIZE = 64 * 1024

# Algorithm name -> digest size in bytes
SUPPORTED_ALGORITHMS = {
    "sha256": 32,
    "sha384": 48,
    "sha512": 64,
    "sha1": 20,
    "blake2b": 64,
    "blake2s": 32,
    "md5": 16,
}

_HEX_RE = re.compile(r"^[0-9a-f]+$")


@dataclass(frozen=True)
class Digest:
    """Hash algorithm plus lowercase hex value."""

    algorithm: str
    value: str

    def __post_init__(self) -> None:
        algorithm = self.algorithm.strip().lower()
        value = self.value.strip().lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            supported = ", ".join(sorted(SUPPORTED_ALGORITHMS))
            raise ValueError(
                f"Unsupported hash algorithm '{self.algorithm}' (supported: {supported})"
            )
        if not _HEX_RE.match(value):
            raise ValueError(f"Hash value is not hexadecimal: '{self.value}'")
        expected_len = SUPPORTED_ALGORITHMS[algorithm] * 2
        if len(value) != expected_len:
            raise ValueError(
                f"{algorithm} hash must be {expected_len} hex characters, got {len(value)}"
            )
        object.__setattr__(self, "algorithm", algorithm)
        object.__setattr__(self, "value", value)

    @classmethod
    def parse(cls, text: Union[str, "Digest"]) -> "Digest":
        """
        Parse ``algorithm:hex`` or bare hex (SHA-256).

        Raises:
            ValueError: Unknown algorithm or malformed hex
        """
        if isinstance(text, Digest):
            return text
        if not isinstance(text, str):
            raise ValueError(f"Expected a digest string, got {type(text).__name__}")
        text = text.strip()
        if ":" in text:
            algorithm, value = text.split(":", 1)
            return cls(algorithm, value)
        return cls(DEFAULT_ALGORITHM, text)

    def matches(self, other: "Digest") -> bool:
        return self.algorithm == other.algorithm and self.value == other.value

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.value}"


def new_hasher(algorithm: str = DEFAULT_ALGORITHM):
    """Return a fresh hashlib object for a supported algorithm."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(f"Unsupported hash algorithm '{algorithm}'")
    return hashlib.new(algorithm)


def hash_bytes(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> Digest:
    hasher = new_hasher(algorithm)
    hasher.update(data)
    return Digest(algorithm, hasher.hexdigest())


async def hash_file(
    path: Path,
    algorithm: str = DEFAULT_ALGORITHM,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Digest:
    """
    Hash a file's contents without loading it into memory.

    Raises:
        OSError: File can't be read
    """
    hasher = new_hasher(algorithm)
    async with aiofiles.open(path, "rb") as f:
        while True:
            chunk = await f.read(chunk_size)
            if not chunk:
                break
            hasher.update(chunk)
    return Digest(algorithm, hasher.hexdigest())
