"""
Structured logging module.

Provides JSON logging with run IDs and context propagation.

Import directly from sub-modules:
    from fixture_assets.logging.setup import setup_logging, generate_run_id
    from fixture_assets.logging.utilities import get_logger, log_with_context
    from fixture_assets.logging.context import set_log_context
"""
