import logging
import sys
import structlog

# ruido de librerías que el relay usa en cada request
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "openai")


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """JSON a stdout en producción; consola legible con `json_logs=False`."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=log_level, stream=sys.stdout)
    # nunca por debajo de INFO
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(log_level, logging.INFO))
