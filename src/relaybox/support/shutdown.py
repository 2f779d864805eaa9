"""
The single-use broadcast signal shared by every background task of a relay.
"""
import threading


class ShutdownSignal:
    """
    A one-way, broadcast stop signal.

    Any number of threads may wait on the signal; all of them are released when it is
    triggered. Triggering is idempotent: only the first call reports that it fired the
    signal, so callers can use the return value to run their teardown exactly once.
    """

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()

    def trigger(self) -> bool:
        """
        Fires the signal.
        :return: True if this call fired the signal, False if it was already fired.
        """
        with self._lock:
            if self._event.is_set():
                return False
            self._event.set()
            return True

    def is_set(self) -> bool:
        """ non-blocking check if the signal has been fired. """
        return self._event.is_set()

    def wait(self, timeout=None) -> bool:
        """
        Blocks until the signal is fired or the timeout elapses.
        :return: True if the signal has been fired.
        """
        return self._event.wait(timeout)

    def __repr__(self):
        return '<ShutdownSignal %s>' % ('triggered' if self.is_set() else 'clear')
