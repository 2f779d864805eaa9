"""
Implements a conduit over a serial port, for relays attached to an RS-485 bus.
"""

import logging

import serial

from relaybox.conduit.base import Conduit

logger = logging.getLogger(__name__)


class SerialInput:
    """
    Reads from a serial port like a socket: read(count) returns the bytes already waiting, up to count,
    and only blocks (up to the port timeout) when nothing has arrived.
    """

    def __init__(self, ser: serial.Serial):
        self.ser = ser

    def read(self, count=1):
        return self.ser.read(min(count, max(1, self.ser.in_waiting)))

    def close(self):
        self.ser.close()


class SerialConduit(Conduit):
    """
    A conduit that provides comms via a serial port.
    A read that reaches the port timeout returns no data, which readers treat as end of stream.
    """

    def __init__(self, ser: serial.Serial):
        self.ser = ser
        self._input = SerialInput(ser)

    @property
    def target(self):
        return self.ser

    @property
    def input(self):
        return self._input

    @property
    def output(self):
        return self.ser

    @property
    def open(self) -> bool:
        return self.ser.is_open

    def close(self):
        # unblock a reader waiting on another thread before closing the port
        if hasattr(self.ser, 'cancel_read'):
            self.ser.cancel_read()
        self.ser.close()


def serial_conduit_factory(*args, **kwargs):
    """
    Creates a factory function that opens a conduit on a serial port.
    All arguments are passed directly to `serial.Serial`
    :return: a factory for serial conduits
    """
    def open_serial_conduit():
        ser = serial.Serial(*args, **kwargs)
        logger.info("opened serial port %s" % ser.port)
        return SerialConduit(ser)

    return open_serial_conduit
