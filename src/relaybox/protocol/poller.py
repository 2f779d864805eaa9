"""
Periodic inquiries written to the relay. Each registered task runs on its own thread and
ticks on its own interval; the tasks share only the relay's stop signal and its conduit.
"""
import logging
import math

from relaybox.errors import RelayConfigError
from relaybox.protocol.loop import AsyncLoop
from relaybox.support.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)


class InquiryTask:
    """
    A function to call periodically.
    :param fn: a callable taking no arguments that writes one request. It raises on failure.
    :param interval: seconds between calls
    """

    def __init__(self, fn, interval):
        if not callable(fn):
            raise RelayConfigError("inquiry %r is not callable" % (fn,))
        if isinstance(interval, bool) or not isinstance(interval, (int, float)) \
                or not math.isfinite(interval) or interval <= 0:
            raise RelayConfigError("inquiry interval must be a finite positive number, got %r" % (interval,))
        self.fn = fn
        self.interval = interval

    @property
    def name(self):
        return getattr(self.fn, '__name__', repr(self.fn))

    def __repr__(self):
        return 'InquiryTask(%s, %s)' % (self.name, self.interval)


class InquiryLoop(AsyncLoop):
    """
    Calls an inquiry immediately, then once per interval until the stop signal fires.
    A failed call is terminal for this task: it is logged, on_error is notified and the loop exits.

    :param wait: called with the interval between calls, and returns True when the loop should stop.
        Defaults to waiting on the stop signal, so stopping interrupts the wait.
    """

    def __init__(self, task: InquiryTask, stop_event: ShutdownSignal, on_error=None, wait=None, log=logger):
        super().__init__(stop_event=stop_event, log=log, name='inquiry-%s' % task.name)
        self.task = task
        self.on_error = on_error
        self._wait = wait or stop_event.wait
        self.calls = 0

    def loop(self):
        self.calls += 1
        self.task.fn()
        self._wait(self.task.interval)

    def exception_handler(self, e):
        if self.stop_event.is_set():
            self.logger.debug("inquiry %s stopped: %s" % (self.task.name, e))
        else:
            self.logger.error("inquiry %s failed, stopping: %s" % (self.task.name, e))
        if self.on_error:
            self.on_error(e)


class WriteLoop:
    """ Runs each inquiry task on its own InquiryLoop. """

    def __init__(self, tasks, stop_event: ShutdownSignal, on_error=None):
        self.stop_event = stop_event
        self.loops = [InquiryLoop(task, stop_event, on_error) for task in tasks]

    def start(self):
        for loop in self.loops:
            loop.start()

    def join(self, timeout=None):
        return all([loop.join(timeout) for loop in self.loops])

    def stop(self):
        self.stop_event.trigger()
        self.join()
