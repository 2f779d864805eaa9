"""
Provides the background thread building block shared by the relay's read loop and inquiry loops.
"""
import logging
import threading
from collections.abc import Callable

from relaybox.support.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)


class AsyncLoop:
    """ Continually runs a given function on a background thread until the stop signal fires.
        An exception raised by the function is posted to exception_handler() and ends the loop;
        it is not retried.
        The background thread is registered as a daemon.

        Several loops may share one stop signal, in which case stopping any of them stops all.
    """

    def __init__(self, fn: Callable=None, args=(), stop_event: ShutdownSignal=None, log=logger, name=None):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param stop_event the signal that ends the loop. A private signal is created when not given.
        :param name the name of the background thread
        """
        self.fn = fn
        self.args = args
        self.stop_event = stop_event if stop_event is not None else ShutdownSignal()
        self.background_thread = None
        self.logger = log
        self.name = name
        self._start_lock = threading.Lock()

    def start(self):
        """
        Starts the background thread. Calling start() on a loop that has already
        been started does nothing.
        """
        with self._start_lock:
            if self.background_thread is None:
                t = threading.Thread(target=self._run, name=self.name)
                t.daemon = True
                self.background_thread = t
                try:
                    t.start()
                except RuntimeError:
                    self.background_thread = None
                    raise

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the stop signal is not received,
             or until the callable raises an exception.
        """
        if self._do(self.startup):
            while self.running() and self._do(self.loop):
                pass
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting" % self.name)

    def _do(self, callme):
        """ runs a function and captures any exceptions
        :return: True if the function completed normally
        """
        try:
            callme()
            return True
        except Exception as e:
            self.exception_handler(e)
            return False

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    def join(self, timeout=None):
        """ waits for the background thread to exit. Returns True if it has exited. """
        thread = self.background_thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
            return not thread.is_alive()
        return True

    def stop(self):
        self.stop_event.trigger()
        self.join()
