"""Log context propagated through contextvars (safe across asyncio tasks)."""

from contextvars import ContextVar
from typing import Dict, Optional

_run_id: ContextVar[str] = ContextVar("run_id", default="")
_asset: ContextVar[str] = ContextVar("asset", default="")


def set_log_context(
    run_id: Optional[str] = None,
    asset: Optional[str] = None,
) -> None:
    """Set context fields picked up by the formatters. None leaves a field as is."""
    if run_id is not None:
        _run_id.set(run_id)
    if asset is not None:
        _asset.set(asset)


def get_log_context() -> Dict[str, str]:
    return {
        "run_id": _run_id.get(),
        "asset": _asset.get(),
    }


def clear_log_context() -> None:
    _run_id.set("")
    _asset.set("")
