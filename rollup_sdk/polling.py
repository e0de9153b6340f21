"""
Poll-until-satisfied helper.

There is no built-in timeout: a loop runs until the task returns a value or
the caller sets the cancel event.
"""
import logging
import threading
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from .exceptions import PollingCancelledError
from .rpc._rate_limited_log import rate_limited_log

T = TypeVar('T')

logger = logging.getLogger(__name__)


def poll_until(
    task: Callable[[], Optional[T]],
    interval: float,
    retry_on: Tuple[Type[BaseException], ...] = (),
    cancel_event: Optional[threading.Event] = None,
    description: str = "result",
    logger_instance: Optional[logging.Logger] = None,
) -> T:
    """
    Call ``task`` every ``interval`` seconds until it returns something other than None.

    Args:
        task: Zero-argument callable; None means "not available yet"
        interval: Seconds between attempts
        retry_on: Exception types treated as "not available yet"; anything
            else propagates immediately
        cancel_event: Set by the caller to stop waiting
        description: What is being waited for, used in log lines
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        The first non-None value returned by ``task``

    Raises:
        PollingCancelledError: If ``cancel_event`` is set
    """
    log = logger_instance or logger
    attempt = 0
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise PollingCancelledError(f"Stopped waiting for {description} after {attempt} attempts")

        attempt += 1
        try:
            value = task()
        except retry_on as e:
            rate_limited_log(f"Transient failure while waiting for {description}: {e}", "warning", log)
            value = None

        if value is not None:
            log.debug(f"Got {description} after {attempt} attempts")
            return value

        if cancel_event is not None:
            if cancel_event.wait(interval):
                raise PollingCancelledError(f"Stopped waiting for {description} after {attempt} attempts")
        else:
            time.sleep(interval)
