import logging
import threading

_lock = threading.Lock()
_configured = False

_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def _configure_root_logger() -> logging.Logger:
    global _configured
    root = logging.getLogger("studyflow")
    with _lock:
        if _configured:
            return root
        if not root.handlers:
            h = logging.StreamHandler()
            h.setFormatter(logging.Formatter(_FORMAT))
            root.addHandler(h)
        root.setLevel(logging.INFO)
        _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Returns a logger below the ``studyflow`` root, configuring the root once."""
    _configure_root_logger()
    return logging.getLogger(name)


def set_verbosity(level: int) -> None:
    """Sets the level of the ``studyflow`` root logger (e.g. ``logging.WARNING``)."""
    _configure_root_logger().setLevel(level)


def get_verbosity() -> int:
    return _configure_root_logger().getEffectiveLevel()
