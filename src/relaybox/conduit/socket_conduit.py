import logging
import socket

from relaybox.conduit import base

logger = logging.getLogger(__name__)


class SocketConduit(base.Conduit):
    """
    A conduit that provides communication via a socket.
    The input stream is unbuffered so a read returns as soon as any bytes arrive.
    :param sock The open, connected socket
    """
    def __init__(self, sock: socket.socket):
        """
        :param sock: the client socket that represents the connection
        :type sock: socket
        """
        self.sock = sock
        self.read = sock.makefile('rb', buffering=0)
        self.write = sock.makefile('wb')

    @property
    def open(self) -> bool:
        return self.sock.fileno() >= 0

    @property
    def target(self):
        return self.sock

    @property
    def output(self):
        return self.write

    @property
    def input(self):
        return self.read

    def close(self):
        # shut down first so a read blocked on another thread returns
        try:
            self.sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass    # the peer may have closed the socket
        finally:
            self.read.close()
            self.write.close()
            self.sock.close()


def open_socket_conduit(address, timeout=None, connect_timeout=5):
    """
    Connects a client socket and wraps it in a conduit.
    :param address: the (host, port) to connect to
    :param timeout: the read timeout once connected. None blocks indefinitely. A read that times
        out raises socket.timeout, which ends the relay's read loop.
    :param connect_timeout: how long to wait for the connection to be established
    """
    sock = socket.create_connection(address, timeout=connect_timeout)
    sock.settimeout(timeout)
    logger.info("opened socket to %s" % str(address))
    return SocketConduit(sock)
