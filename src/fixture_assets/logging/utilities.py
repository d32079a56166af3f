"""
Logging helpers: structured context fields, exception logging, logger mixin.
"""

import logging
from typing import Any, Dict, Optional

from fixture_assets.security import sanitize_error_message, sanitize_url


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Use this instead of logging.getLogger() to ensure consistent naming.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log with structured context fields.

    Args:
        logger: Logger instance
        level: Log level (logging.INFO, etc.)
        msg: Log message
        **kwargs: Additional context fields (asset_name, duration_ms, etc.)

    Example:
        log_with_context(
            logger, logging.INFO, "Asset downloaded",
            asset_name=asset.name,
            duration_ms=elapsed,
            bytes_downloaded=1024,
        )
    """
    logger.log(level, msg, extra=kwargs)


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log exception with context and optional traceback.

    Automatically extracts error_category from AssetError subclasses.

    Args:
        logger: Logger instance
        exc: Exception to log
        msg: Context message
        level: Log level (default: ERROR)
        include_traceback: Include full traceback (default: True)
        **kwargs: Additional context fields

    Example:
        try:
            await materializer.ensure(assets)
        except Exception as e:
            log_exception(logger, e, "Materialization failed", **extract_log_context(asset))
    """
    error_category = kwargs.get("error_category")
    if error_category is None and hasattr(exc, "category"):
        cat = exc.category
        error_category = cat.value if hasattr(cat, "value") else str(cat)
        kwargs["error_category"] = error_category

    kwargs["error_message"] = sanitize_error_message(str(exc))

    if include_traceback:
        logger.log(level, msg, exc_info=exc, extra=kwargs)
    else:
        logger.log(level, msg, extra=kwargs)


def extract_log_context(obj: Any) -> Dict[str, Any]:
    """
    Extract loggable context from an asset or outcome.

    Args:
        obj: TestAsset, AssetOutcome, or None

    Returns:
        Dict with identifier fields suitable for logging
    """
    ctx: Dict[str, Any] = {}

    if obj is None:
        return ctx

    # Unwrap outcomes to get the underlying asset
    inner = obj
    if hasattr(obj, "asset") and obj.asset is not None:
        inner = obj.asset
        status = getattr(obj, "status", None)
        if status is not None:
            ctx["status"] = status.value if hasattr(status, "value") else str(status)

    name = getattr(inner, "name", None)
    if name:
        ctx["asset_name"] = name

    source = getattr(inner, "source", None)
    if source:
        ctx["source_url"] = sanitize_url(str(source))

    expected = getattr(inner, "expected_hash", None)
    if expected is not None:
        ctx["expected_hash"] = str(expected)

    return ctx


class LoggedClass:
    """
    Mixin providing logging infrastructure for classes.

    Provides:
    - self._logger: Logger instance
    - self._log(): Log with auto-extracted context
    - self._log_exception(): Exception logging with context

    Example:
        class CacheDirectory(LoggedClass):
            def __init__(self, root):
                self.root = root
                super().__init__()
    """

    log_component: Optional[str] = None  # Optional logger name suffix

    def __init__(self, *args, **kwargs):
        logger_name = self.__class__.__module__
        if self.log_component:
            logger_name = f"{logger_name}.{self.log_component}"
        self._logger = get_logger(logger_name)
        super().__init__(*args, **kwargs)

    def _instance_context(self) -> Dict[str, Any]:
        ctx: Dict[str, Any] = {}
        cache_dir = getattr(self, "cache_dir", None) or getattr(self, "root", None)
        if cache_dir is not None:
            ctx["cache_path"] = str(cache_dir)
        return ctx

    def _log(self, level: int, msg: str, **extra: Any) -> None:
        """
        Log with automatic context extraction from instance.

        Args:
            level: Log level
            msg: Log message
            **extra: Additional context fields
        """
        context = self._instance_context()
        context.update(extra)
        log_with_context(self._logger, level, msg, **context)

    def _log_exception(
        self,
        exc: Exception,
        msg: str,
        level: int = logging.ERROR,
        include_traceback: bool = True,
        **extra: Any,
    ) -> None:
        """
        Log exception with automatic context extraction from instance.

        Args:
            exc: Exception to log
            msg: Context message
            level: Log level (default: ERROR)
            include_traceback: Include full traceback (default: True)
            **extra: Additional context fields
        """
        context = self._instance_context()
        context.update(extra)
        log_exception(
            self._logger,
            exc,
            msg,
            level=level,
            include_traceback=include_traceback,
            **context,
        )
