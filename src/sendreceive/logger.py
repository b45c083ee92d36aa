import json
import logging
import os
import sys
import tempfile

DEFAULT_LOG_FILE = os.path.join(tempfile.gettempdir(), "sendreceive.log")


class JsonFormatter(logging.Formatter):
    """Single-line JSON formatter for structured debug output.

    Produces one JSON object per log record with fields: ts, level, logger,
    thread, msg.  Exception info is included as an "exc" field when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    default_level: str | None = None,
) -> None:
    """
    Configure logging based on execution mode.

    Args:
        mode: "background" for file logging only (hosts whose console
              belongs to a UI), "cli" for stderr logging.
        debug: If True, overrides LOG_LEVEL to DEBUG.
        log_file: Custom log file path (overrides SENDRECEIVE_LOG_FILE env var).
        debug_format: "text" (default) or "json" for structured output.
        default_level: Level used when LOG_LEVEL is unset, e.g. from the
              config file.

    Environment variables:
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Default: WARNING for background mode, INFO for CLI mode.
        SENDRECEIVE_LOG_FILE: Custom log file path for background mode.
                  Default: <tempdir>/sendreceive.log
    """
    if default_level is None:
        default_level = "WARNING" if mode == "background" else "INFO"
    env_level = os.getenv("LOG_LEVEL", default_level).upper()

    # debug parameter overrides environment
    if debug:
        log_level = logging.DEBUG
    else:
        log_level = getattr(logging, env_level, logging.INFO)

    if mode == "background":
        # Priority: log_file param > SENDRECEIVE_LOG_FILE env var > default
        final_log_file = log_file or os.getenv(
            "SENDRECEIVE_LOG_FILE", DEFAULT_LOG_FILE
        )
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] [%(threadName)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            filename=final_log_file,
            filemode="a",
        )
        return

    # CLI mode: stderr, plus log_file when given
    handlers: list[logging.Handler] = []
    stderr_handler = logging.StreamHandler(sys.stderr)

    if debug_format == "json":
        stderr_handler.setFormatter(
            JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        )
    else:
        stderr_handler.setFormatter(
            logging.Formatter(
                "[%(asctime)s] [%(levelname)s] %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    handlers.append(stderr_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        if debug_format == "json":
            file_handler.setFormatter(
                JsonFormatter(datefmt="%Y-%m-%d %H:%M:%S")
            )
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s] [%(levelname)s] %(name)s %(message)s",
                    datefmt="%Y-%m-%d %H:%M:%S",
                )
            )
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
    )
