import logging
import sys

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s %(message)s"


def _coerce_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    return getattr(logging, str(level).upper(), logging.INFO)


def setup_logging(level: str | int = "INFO") -> None:
    """Route all loggers (uvicorn's included) to a single stdout handler."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root.setLevel(_coerce_level(level))
    root.addHandler(handler)
