"""Logging configuration for dockyards-pdns using structlog."""

import logging
import os
import sys
from typing import Any

import structlog

# Libraries whose INFO output repeats what the reconcilers already log
NOISY_LOGGERS = ("kopf", "kubernetes.client.rest", "urllib3", "aiohttp.access")


def setup_logging(verbose: bool = False) -> None:
    """Setup structured logging configuration.

    Args:
        verbose: If True, enables DEBUG logging regardless of LOG_LEVEL env var,
            including the operator framework and Kubernetes client loggers
    """
    # Determine log level from environment or verbose flag
    if verbose:
        log_level = "DEBUG"
    else:
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()

    numeric_level = getattr(logging, log_level, logging.INFO)

    # kopf and the Kubernetes client log through stdlib logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
    )
    library_level = numeric_level if verbose else max(numeric_level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _get_renderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger(__name__)
    logger.info("Logging configured", log_level=log_level, library_log_level=logging.getLevelName(library_level),
                verbose=verbose)


def _get_renderer() -> Any:
    """Get the appropriate log renderer based on environment."""
    # JSON for log collectors in the cluster, console otherwise
    log_format = os.getenv("LOG_FORMAT", "console").lower()

    if log_format == "json":
        return structlog.processors.JSONRenderer()
    else:
        return structlog.dev.ConsoleRenderer(
            colors=sys.stdout.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name, typically __name__

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_function_entry(logger: structlog.stdlib.BoundLogger, func_name: str, **kwargs: Any) -> None:
    """Log function entry with parameters.

    Args:
        logger: The logger instance
        func_name: Name of the function being entered
        **kwargs: Function parameters to log
    """
    logger.debug("Function entry", function=func_name, **kwargs)


def log_function_exit(logger: structlog.stdlib.BoundLogger, func_name: str, **kwargs: Any) -> None:
    """Log function exit with return values.

    Args:
        logger: The logger instance
        func_name: Name of the function being exited
        **kwargs: Return values or exit status to log
    """
    logger.debug("Function exit", function=func_name, **kwargs)


def log_api_request(logger: structlog.stdlib.BoundLogger, method: str, path: str, **kwargs: Any) -> None:
    """Log a health API request.

    Kubelet health checks hit these endpoints every few seconds, so requests are logged at
    debug level only.

    Args:
        logger: The logger instance
        method: HTTP method
        path: Request path
        **kwargs: Additional request details
    """
    logger.debug("API request", method=method, path=path, **kwargs)


def log_api_response(logger: structlog.stdlib.BoundLogger, method: str, path: str, status_code: int, **kwargs: Any) -> None:
    """Log a health API response, at warning level when the controller is not ready.

    Args:
        logger: The logger instance
        method: HTTP method
        path: Request path
        status_code: HTTP status code
        **kwargs: Additional response details
    """
    log = logger.warning if status_code >= 500 else logger.debug
    log("API response", method=method, path=path, status_code=status_code, **kwargs)


def log_k8s_operation(logger: structlog.stdlib.BoundLogger, operation: str, kind: str, **kwargs: Any) -> None:
    """Log a Kubernetes API call.

    Args:
        logger: The logger instance
        operation: Type of K8s operation (get, create, patch)
        kind: Resource kind the operation targets
        **kwargs: Additional operation details
    """
    logger.debug("Kubernetes operation", operation=operation, kind=kind, **kwargs)


def log_upsert_result(logger: structlog.stdlib.BoundLogger, message: str, operation_result: Any, **kwargs: Any) -> None:
    """Log the outcome of a create-or-patch.

    Writes are logged at info level; unchanged objects only at debug level,
    since every periodic reconcile produces one per object.

    Args:
        logger: The logger instance
        message: Event message, e.g. "Reconciled DNS Zone"
        operation_result: OperationResult of the upsert
        **kwargs: Identity of the object and its owner
    """
    value = getattr(operation_result, "value", operation_result)
    log = logger.debug if value == "unchanged" else logger.info
    log(message, operation_result=value, **kwargs)


def log_reconcile_event(logger: structlog.stdlib.BoundLogger, event_type: str, **kwargs: Any) -> None:
    """Log operator lifecycle events.

    Args:
        logger: The logger instance
        event_type: Type of event, e.g. manager_started
        **kwargs: Event details
    """
    logger.info("Reconcile event", event_type=event_type, **kwargs)
