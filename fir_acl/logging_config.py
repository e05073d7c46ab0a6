from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this package.

    Notes:
    - The ASGI server configures handlers; this only sets the level of `fir_acl.*` loggers.
    - Authorization decisions log at DEBUG, mutations at INFO and fail-closed denials at WARNING.
    - Set `FIR_ACL_LOG_LEVEL=DEBUG` to trace every allow/deny.
    """

    normalized = level.upper()
    logging.getLogger("fir_acl").setLevel(normalized)
    logging.getLogger("fir_acl").propagate = True
