"""Result type for source fetches."""

from dataclasses import dataclass
from typing import Optional

from fixture_assets.hashing import Digest


@dataclass(frozen=True)
class FetchResult:
    """
    Outcome of streaming a source into a local file.

    Attributes:
        bytes_written: Bytes written to the output file
        digest: Digest of the written bytes
        status_code: HTTP status (None for file:// sources)
        content_type: Response Content-Type, when the transport reports one
    """

    bytes_written: int
    digest: Digest
    status_code: Optional[int] = None
    content_type: Optional[str] = None
