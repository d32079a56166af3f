"""
Asset declarations and materialization results.

TestAsset is the declaration test code hands to the materializer;
AssetOutcome and EnsureResult describe what one ensure() call did.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from fixture_assets.errors import AssetError, AssetsUnavailableError
from fixture_assets.hashing import Digest
from fixture_assets.security import validate_asset_name, validate_source_url


class TestAsset(BaseModel):
    """Declaration of a test fixture fetched from a remote source.

    Attributes:
        name: Cache file name (a single path segment)
        source: URL the content is fetched from (http, https or file)
        expected_hash: Digest the content must match

    Example:
        >>> asset = TestAsset(
        ...     name="fixture.bin",
        ...     source="https://example.test/fixture.bin",
        ...     expected_hash="sha256:" + "ab" * 32,
        ... )
        >>> asset.expected_hash.algorithm
        'sha256'
    """

    # Not a test class, despite the name
    __test__: ClassVar[bool] = False

    name: str = Field(..., description="Cache file name", min_length=1)
    source: str = Field(..., description="Source URL", min_length=1)
    expected_hash: Digest = Field(..., description="Expected content digest")

    model_config = {"frozen": True}

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        is_valid, error = validate_asset_name(v)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("source")
    @classmethod
    def validate_source(cls, v: str) -> str:
        v = v.strip()
        is_valid, error = validate_source_url(v)
        if not is_valid:
            raise ValueError(error)
        return v

    @field_validator("expected_hash", mode="before")
    @classmethod
    def parse_expected_hash(cls, v: Any) -> Digest:
        return Digest.parse(v)

    @field_serializer("expected_hash")
    def serialize_expected_hash(self, digest: Digest) -> str:
        return str(digest)


class AssetStatus(str, Enum):
    """What ensure() did for one asset."""

    CACHED = "cached"
    DOWNLOADED = "downloaded"
    FAILED = "failed"


@dataclass
class AssetOutcome:
    """
    Result of materializing a single asset.

    Use the factory classmethods rather than the constructor.
    """

    asset: TestAsset
    status: AssetStatus
    path: Optional[Path] = None
    bytes_downloaded: int = 0
    actual_hash: Optional[Digest] = None
    error: Optional[AssetError] = None
    duration_ms: float = 0.0

    @property
    def name(self) -> str:
        return self.asset.name

    @property
    def success(self) -> bool:
        return self.status is not AssetStatus.FAILED

    @classmethod
    def cached(
        cls, asset: TestAsset, path: Path, duration_ms: float = 0.0
    ) -> "AssetOutcome":
        return cls(
            asset=asset,
            status=AssetStatus.CACHED,
            path=path,
            actual_hash=asset.expected_hash,
            duration_ms=duration_ms,
        )

    @classmethod
    def downloaded(
        cls,
        asset: TestAsset,
        path: Path,
        bytes_downloaded: int,
        duration_ms: float = 0.0,
    ) -> "AssetOutcome":
        return cls(
            asset=asset,
            status=AssetStatus.DOWNLOADED,
            path=path,
            bytes_downloaded=bytes_downloaded,
            actual_hash=asset.expected_hash,
            duration_ms=duration_ms,
        )

    @classmethod
    def failed(
        cls,
        asset: TestAsset,
        error: AssetError,
        actual_hash: Optional[Digest] = None,
        duration_ms: float = 0.0,
    ) -> "AssetOutcome":
        return cls(
            asset=asset,
            status=AssetStatus.FAILED,
            actual_hash=actual_hash,
            error=error,
            duration_ms=duration_ms,
        )


@dataclass
class EnsureResult:
    """Ordered outcomes of one ensure() call."""

    outcomes: List[AssetOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(o.success for o in self.outcomes)

    @property
    def failed(self) -> List[AssetOutcome]:
        return [o for o in self.outcomes if o.status is AssetStatus.FAILED]

    @property
    def downloaded(self) -> List[AssetOutcome]:
        return [o for o in self.outcomes if o.status is AssetStatus.DOWNLOADED]

    @property
    def cached(self) -> List[AssetOutcome]:
        return [o for o in self.outcomes if o.status is AssetStatus.CACHED]

    @property
    def errors(self) -> List[AssetError]:
        return [o.error for o in self.failed if o.error is not None]

    @property
    def paths(self) -> Dict[str, Path]:
        return {o.name: o.path for o in self.outcomes if o.path is not None}

    def path_for(self, name: str) -> Path:
        """Path of a materialized asset.

        Raises:
            KeyError: Asset wasn't part of this call or failed
        """
        paths = self.paths
        if name not in paths:
            raise KeyError(f"Asset '{name}' was not materialized")
        return paths[name]

    def raise_for_errors(self) -> "EnsureResult":
        """Raise AssetsUnavailableError if any asset failed, else return self."""
        if not self.ok:
            raise AssetsUnavailableError(self.errors)
        return self
