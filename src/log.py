import logging
import pathlib
import sys

import pendulum

from core.config import settings

_root_logger = logging.getLogger()

LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s.%(funcName)s:%(lineno)d %(message)s"


def get_log_path(filename: str) -> pathlib.Path:
    log_dir = pathlib.Path(settings.LOG_DIR).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / f"{filename}.log"


def setup_logging_to_file(
    app: str,
    level: int = logging.INFO,
    *,
    logger: logging.Logger = _root_logger,
    timestamp: bool = True,
) -> pathlib.Path:
    formatter = logging.Formatter(LOG_FORMAT)
    if timestamp:
        filename = f"{app}.{pendulum.now():%Y%m%d.%H%M%S.%f}"
    else:
        filename = app
    log_path = get_log_path(filename)
    file_handler = logging.FileHandler(log_path)
    file_handler.formatter = formatter
    logger.setLevel(level)
    logger.addHandler(file_handler)
    return log_path


def setup_logging_to_console(level=logging.INFO, *, logger: logging.Logger = _root_logger):
    logger.setLevel(level)
    if not sys.stdout.isatty():
        # containers and supervisors: plain lines on stdout
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)
        return

    from rich.logging import RichHandler
    from rich.traceback import install

    install(show_locals=False)
    handler = RichHandler(rich_tracebacks=True, level=level, show_time=True)
    logger.addHandler(handler)


def setup_logging_to_seq(level=logging.INFO) -> bool:
    if not settings.SEQ_SERVER_URL:
        return False

    import seqlog

    seqlog.log_to_seq(
        server_url=settings.SEQ_SERVER_URL,
        api_key=settings.SEQ_SERVER_API_KEY,
        level=level,
        batch_size=10,
        auto_flush_timeout=10,
        override_root_logger=False,
    )
    return True


def configure_logging(app: str, level: int | str | None = None, *, to_file: bool = True):
    """Console, file and (when SEQ_SERVER_URL is set) Seq logging for an entry point."""
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    # seqlog installs its handler on the root logger, so it goes first
    shipped = setup_logging_to_seq(level=level)
    setup_logging_to_console(level=level)
    if to_file:
        setup_logging_to_file(app=app, level=level)
    if shipped:
        logging.getLogger(__name__).info("Seq logging enabled for %s", app)
