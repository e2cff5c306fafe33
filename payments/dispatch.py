import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache

from django.conf import settings

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Fire-and-forget runner for notification jobs.

    A job's exception is logged by the done-callback and never reaches the
    code that submitted it.
    """

    def __init__(self, max_workers=4, synchronous=False):
        self.synchronous = synchronous
        self._executor = None if synchronous else ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="notify"
        )

    def submit(self, fn, *args, **kwargs) -> Future:
        if self.synchronous:
            future = Future()
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)
        else:
            future = self._executor.submit(fn, *args, **kwargs)
        future.add_done_callback(lambda f: self._log_failure(fn, f))
        return future

    @staticmethod
    def _log_failure(fn, future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Notification job %s failed", getattr(fn, "__name__", fn),
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    def shutdown(self, wait=True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)


@lru_cache(maxsize=None)
def get_dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher(
        max_workers=getattr(settings, "NOTIFICATION_WORKERS", 4),
        synchronous=getattr(settings, "NOTIFICATIONS_SYNCHRONOUS", False),
    )
