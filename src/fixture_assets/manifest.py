"""
Asset manifests.

Two formats:

Hash lists, one ``<sha256-hex> <name>`` entry per line. The ``sha256sum``
separators (two spaces, or `` *`` for binary mode) are accepted too::

    # fixtures for the decoder tests
    9f86d081884c7d659a2feaa0c55ad015a3bf4f1b2b0b822cd15d6c15b0f00a08 fixture.bin

YAML manifests, for per-asset sources and other algorithms::

    base_url: https://example.test/fixtures
    assets:
      - name: fixture.bin
        hash: sha256:9f86d0...
      - name: other.bin
        hash: sha512:...
        source: https://mirror.test/other.bin
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import yaml
from pydantic import ValidationError

from fixture_assets.errors import ManifestError
from fixture_assets.hashing import DEFAULT_ALGORITHM, Digest
from fixture_assets.models import TestAsset


def join_url(base_url: str, name: str) -> str:
    """Append a file name to a base URL, whether or not it ends with '/'."""
    return f"{base_url.rstrip('/')}/{name}"


class HashList:
    """
    Mapping of file names to SHA-256 digests.

    Example:
        >>> hashes = HashList()
        >>> hashes.add_entry("fixture.bin", "ab" * 32)
        >>> hashes.to_lines()
        ['abab...abab fixture.bin']
    """

    def __init__(self, entries: Optional[Dict[str, Digest]] = None):
        self._name_to_hash: Dict[str, Digest] = dict(entries or {})

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "HashList":
        """
        Read a hash list file.

        Raises:
            ManifestError: File unreadable or an entry is malformed
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                return cls.from_lines(f)
        except OSError as e:
            raise ManifestError(f"Cannot read hash list {path}", cause=e) from e
        except UnicodeDecodeError as e:
            raise ManifestError(f"Hash list {path} is not valid UTF-8", cause=e) from e

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "HashList":
        """
        Parse hash list lines.

        Comment lines (``#``) and lines without a name are skipped. The name may
        be separated by one or two spaces, or by `` *`` (binary mode).

        Raises:
            ManifestError: A hash isn't valid SHA-256 hex
        """
        entries: Dict[str, Digest] = {}
        for lineno, raw in enumerate(lines, start=1):
            line = raw.rstrip("\r\n")
            if line.startswith("#"):
                continue
            parts = line.split(" ", 1)
            if len(parts) < 2 or not parts[1]:
                continue
            hash_str, name = parts
            if name[0] in " *":
                name = name[1:]
            if not name:
                continue
            try:
                digest = Digest(DEFAULT_ALGORITHM, hash_str)
            except ValueError as e:
                raise ManifestError(
                    f"Bad hash format on line {lineno}: {e}", name=name
                ) from e
            entries[name] = digest
        return cls(entries)

    def to_file(self, path: Union[str, Path]) -> None:
        """
        Write the hash list, one entry per line, sorted by name.

        Raises:
            ManifestError: File can't be written
        """
        try:
            with open(path, "w", encoding="utf-8") as f:
                for line in self.to_lines():
                    f.write(line + "\n")
        except OSError as e:
            raise ManifestError(f"Cannot write hash list {path}", cause=e) from e

    def to_lines(self) -> List[str]:
        return [
            f"{self._name_to_hash[name].value} {name}"
            for name in sorted(self._name_to_hash)
        ]

    def get_hash(self, name: str) -> Optional[Digest]:
        return self._name_to_hash.get(name)

    def add_entry(self, name: str, digest: Union[str, Digest]) -> None:
        """
        Add or replace an entry.

        Raises:
            ValueError: digest isn't SHA-256
        """
        digest = Digest.parse(digest)
        if digest.algorithm != DEFAULT_ALGORITHM:
            raise ValueError(
                f"Hash lists hold {DEFAULT_ALGORITHM} digests, got {digest.algorithm}"
            )
        self._name_to_hash[name] = digest

    def assets(self, base_url: str) -> List[TestAsset]:
        """
        Declarations for every entry, sourced from base_url/name.

        Raises:
            ManifestError: An entry doesn't form a valid declaration
        """
        assets = []
        for name in sorted(self._name_to_hash):
            try:
                assets.append(
                    TestAsset(
                        name=name,
                        source=join_url(base_url, name),
                        expected_hash=self._name_to_hash[name],
                    )
                )
            except ValidationError as e:
                raise ManifestError(f"Invalid hash list entry: {e}", name=name) from e
        return assets

    def __contains__(self, name: object) -> bool:
        return name in self._name_to_hash

    def __len__(self) -> int:
        return len(self._name_to_hash)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._name_to_hash))


def parse_asset_manifest(data: Any) -> List[TestAsset]:
    """
    Build declarations from a parsed YAML manifest document.

    Raises:
        ManifestError: Document shape or an entry is invalid
    """
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a mapping with an 'assets' list")

    base_url = data.get("base_url")
    if base_url is not None and not isinstance(base_url, str):
        raise ManifestError("'base_url' must be a string")

    entries = data.get("assets")
    if not isinstance(entries, list) or not entries:
        raise ManifestError("Manifest must contain a non-empty 'assets' list")

    assets: List[TestAsset] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ManifestError(f"Asset entry {index} must be a mapping")
        name = entry.get("name")
        source = entry.get("source")
        if source is None and base_url and isinstance(name, str):
            source = join_url(base_url, name.strip())
        if source is None:
            raise ManifestError(
                f"Asset entry {index} has no 'source' and the manifest has no 'base_url'",
                name=name if isinstance(name, str) else None,
            )
        try:
            assets.append(
                TestAsset(
                    name=name,
                    source=source,
                    expected_hash=entry.get("hash", entry.get("expected_hash")),
                )
            )
        except ValidationError as e:
            raise ManifestError(
                f"Invalid asset entry {index}: {e}",
                name=name if isinstance(name, str) else None,
            ) from e

    names = [a.name for a in assets]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ManifestError(f"Duplicate asset names: {', '.join(duplicates)}")

    return assets


def load_asset_manifest(path: Union[str, Path]) -> List[TestAsset]:
    """
    Load declarations from a YAML manifest file.

    Raises:
        ManifestError: File unreadable, not YAML, or invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ManifestError(f"Cannot read manifest {path}", cause=e) from e
    except UnicodeDecodeError as e:
        raise ManifestError(f"Manifest {path} is not valid UTF-8", cause=e) from e
    except yaml.YAMLError as e:
        raise ManifestError(f"Manifest {path} is not valid YAML", cause=e) from e
    return parse_asset_manifest(data)
