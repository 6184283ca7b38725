# medcrm/cache.py
from collections import deque
from typing import Callable, Deque, List

import structlog

logger = structlog.get_logger(__name__)

_listeners: List[Callable[[str], None]] = []
recent_paths: Deque[str] = deque(maxlen=200)


def on_revalidate(callback: Callable[[str], None]) -> Callable[[str], None]:
    """Register a callback invoked with every invalidated page path."""
    _listeners.append(callback)
    return callback


def remove_listener(callback: Callable[[str], None]) -> None:
    if callback in _listeners:
        _listeners.remove(callback)


def revalidate_path(*paths: str) -> None:
    """Signal that pages rendered from these paths hold stale data."""
    for path in paths:
        recent_paths.append(path)
        logger.debug("path_revalidated", path=path)
        for callback in list(_listeners):
            callback(path)
