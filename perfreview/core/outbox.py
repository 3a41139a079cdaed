"""
Fire-and-forget side effects (in-app notifications, emails).

Authoritative writes commit first; anything handed to an outbox afterwards is
best-effort. A failing task is logged and dropped, it never reaches the
caller that submitted it.
"""
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Outbox(ABC):
    @abstractmethod
    def submit(self, fn: Callable[..., Any], *args: Any, label: str | None = None, **kwargs: Any) -> None: ...

    def shutdown(self, wait: bool = True) -> None:
        pass


class InlineOutbox(Outbox):
    """Runs tasks immediately in the caller's thread (cron process, tests)."""

    def submit(self, fn, *args, label=None, **kwargs) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Side effect failed", extra={"task": label or getattr(fn, "__name__", "task")})


class ThreadPoolOutbox(Outbox):
    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="outbox")

    def submit(self, fn, *args, label=None, **kwargs) -> None:
        task_label = label or getattr(fn, "__name__", "task")
        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except RuntimeError:
            # executor already shut down
            logger.warning("Outbox closed, dropping side effect", extra={"task": task_label})
            return
        future.add_done_callback(lambda f: _log_failure(f, task_label))

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _log_failure(future: Future, label: str) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("Side effect failed: %s", exc, extra={"task": label}, exc_info=exc)
