"""
Heartbeat Notifier.

Emits periodic "still working" notices while a long-running request is in
flight. The notifier lives exactly as long as its ``with`` block: the
background thread is stopped and joined on every exit path, so no notice
fires after the block has been left.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from loguru import logger

DEFAULT_INTERVAL_SEC = 5.0

Notify = Callable[[str], None]


def _log_notice(message: str) -> None:
    logger.info(message)


@contextmanager
def heartbeat(
    message: str,
    interval_sec: float = DEFAULT_INTERVAL_SEC,
    notify: Optional[Notify] = None,
) -> Iterator[None]:
    """
    Emit ``message`` every ``interval_sec`` seconds while the block runs.

    Args:
        message: Notice text, e.g. "Still uploading...".
        interval_sec: Seconds between notices.
        notify: Receiver of the notices (defaults to ``logger.info``).
    """
    if interval_sec <= 0:
        raise ValueError(f"Heartbeat interval must be positive, got {interval_sec}")

    emit = notify or _log_notice
    stopped = threading.Event()

    def _beat() -> None:
        while not stopped.wait(interval_sec):
            emit(message)

    thread = threading.Thread(target=_beat, name="xray-heartbeat", daemon=True)
    thread.start()
    try:
        yield
    finally:
        stopped.set()
        thread.join()
