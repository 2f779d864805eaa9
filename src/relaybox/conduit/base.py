import logging
import threading
from abc import abstractmethod
from io import IOBase

logger = logging.getLogger(__name__)


class ConduitClosedError(IOError):
    """ Raised when data is written to a conduit that has been closed. """


class Conduit:
    """
    A conduit allows two-way communication. It provides a file-like input endpoint and a file-like output endpoint.
    """

    @property
    @abstractmethod
    def target(self):
        raise NotImplementedError

    @property
    @abstractmethod
    def input(self) -> IOBase:
        """ fetches the I/O stream that provides input.
            Callers use read(n), which returns at most n bytes, and an empty result at end of stream. """
        raise NotImplementedError

    @property
    @abstractmethod
    def output(self) -> IOBase:
        """ fetches the I/O stream that provides output.
            Callers can use the usual write() and flush() methods. """
        raise NotImplementedError

    @property
    @abstractmethod
    def open(self) -> bool:
        """ determines if this conduit is open. When open, the streams provided by
            input and output can be read from/written to."""
        raise NotImplementedError

    @abstractmethod
    def close(self):
        """
        Closes both the input and output streams.
        """
        raise NotImplementedError


class ConduitDecorator(Conduit):
    """
    A ConduitDecorator wraps another conduit and delegates to it's methods.
    This allows subclasses to easily override some behaviors while keeping others
    unchanged.
    """

    def __init__(self, decorate: Conduit):
        self.decorate = decorate

    @property
    def target(self):
        return self.decorate.target

    def close(self):
        self.decorate.close()

    @property
    def input(self) -> IOBase:
        return self.decorate.input

    @property
    def output(self) -> IOBase:
        return self.decorate.output

    @property
    def open(self) -> bool:
        return self.decorate.open


class DefaultConduit(Conduit):
    """ provides the conduit streams from specific read/write file-like types (which may be the same value) """

    def __init__(self, read=None, write=None):
        self._read = self._write = None
        self._closed = False
        self.set_streams(read, write)

    def set_streams(self, read, write=None):
        self._read = read
        self._write = write if write is not None else read

    @property
    def target(self):
        return self._read

    def close(self):
        self._closed = True
        self._write.close()
        if self._read is not self._write:
            self._read.close()

    @property
    def open(self):
        return not self._closed

    @property
    def input(self) -> IOBase:
        return self._read

    @property
    def output(self) -> IOBase:
        return self._write


class SynchronizedConduit(ConduitDecorator):
    """
    Serializes writers on a shared conduit.

    Each call to write() sends one complete buffer while holding a mutex, so buffers from
    concurrent writers never interleave. Reads are not guarded; a duplex transport
    can be read on one thread while another writes.

    Closing is idempotent. Once closed, write() raises ConduitClosedError. When a stop signal is
    given, write() also refuses once the signal is set, checked while holding the write mutex.
    """

    def __init__(self, decorate: Conduit, stop_event=None):
        super().__init__(decorate)
        self.stop_event = stop_event
        self._write_lock = threading.Lock()
        self._close_lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def open(self) -> bool:
        return not self._closed and self.decorate.open

    def write(self, data):
        with self._write_lock:
            if self._closed or (self.stop_event is not None and self.stop_event.is_set()):
                raise ConduitClosedError("conduit %s is closed" % self.target)
            output = self.decorate.output
            output.write(data)
            output.flush()

    def close(self):
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
        try:
            self.decorate.close()
        except (IOError, ValueError) as e:
            logger.warning("error closing conduit %s: %s" % (self.target, e))
