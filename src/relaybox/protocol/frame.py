"""
The frame codec spoken between a relay and its gateway.

Each frame is laid out as::

    0x55 0xAA | address (u16 BE) | function | length | payload (length bytes) | checksum

The checksum is the low byte of the sum of all bytes from the address through the payload.
Report frames carry state; request frames (inquiries and commands) carry an empty or short payload.
"""
import struct
from enum import IntEnum

from relaybox.support.mixins import CommonEqualityMixin, StringerMixin

HEADER = b'\x55\xaa'
HEADER_SIZE = len(HEADER) + 4     # header, address, function, length
CHECKSUM_SIZE = 1
MAX_PAYLOAD = 0xFF
MAX_ADDRESS = 0xFFFF

# the chunk size used by the read loop; frames larger or smaller are reassembled by the decoder
READ_CHUNK_SIZE = 13


class FrameDecodeError(ValueError):
    """ Raised when the byte stream or a frame payload cannot be decoded.
        frames holds any complete frames decoded from the same data before the failure.
    """

    def __init__(self, message, frames=()):
        super().__init__(message)
        self.frames = tuple(frames)


class FunctionCode(IntEnum):
    OUTPUT_STATE = 0x01
    INPUT_STATE = 0x02
    TEMPERATURE_HUMIDITY = 0x03
    INQUIRE_OUTPUT_STATE = 0x81
    INQUIRE_INPUT_STATE = 0x82
    INQUIRE_TEMPERATURE_HUMIDITY = 0x83
    SET_OUTPUT_STATE = 0x84

    @property
    def is_request(self):
        return self >= 0x80


def checksum(data) -> int:
    return sum(data) & 0xFF


class Frame(CommonEqualityMixin, StringerMixin):
    """ One decoded protocol message. """

    def __init__(self, address: int, function: FunctionCode, payload: bytes=b''):
        self.address = address
        self.function = FunctionCode(function)
        self.payload = bytes(payload)

    def to_bytes(self) -> bytes:
        return encode_frame(self.address, self.function, self.payload)

    def __repr__(self):
        return 'Frame(%d, %s, %s)' % (self.address, self.function.name, self.payload.hex())


def encode_frame(address: int, function: FunctionCode, payload: bytes=b'') -> bytes:
    if not 0 <= address <= MAX_ADDRESS:
        raise ValueError("address %r out of range" % address)
    if len(payload) > MAX_PAYLOAD:
        raise ValueError("payload of %d bytes is too long" % len(payload))
    body = struct.pack('>HBB', address, int(function), len(payload)) + bytes(payload)
    return HEADER + body + bytes([checksum(body)])


class FrameDecoder:
    """
    Reassembles frames from a byte stream that arrives in arbitrary chunks.

    Bytes are buffered until a whole frame is present, so a truncated frame is never returned.
    Decoding is strict: data that does not start with the frame header, an unknown function code
    or a checksum mismatch raises FrameDecodeError and discards the buffer. Frames completed
    earlier in the same feed are carried on the error.
    """

    def __init__(self):
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """ the number of buffered bytes not yet decoded """
        return len(self._buffer)

    def feed(self, data) -> list:
        """
        Adds data to the buffer and decodes every complete frame.
        :return: the frames decoded, in arrival order
        """
        self._buffer.extend(data)
        frames = []
        try:
            while True:
                frame = self._next_frame()
                if frame is None:
                    break
                frames.append(frame)
        except FrameDecodeError as e:
            self._buffer.clear()
            e.frames = tuple(frames)
            raise
        return frames

    def _next_frame(self):
        buffer = self._buffer
        prefix = bytes(buffer[:len(HEADER)])
        if not HEADER.startswith(prefix):
            raise FrameDecodeError("expected frame header, got %s" % prefix.hex())
        if len(buffer) < HEADER_SIZE:
            return None
        address, code, length = struct.unpack_from('>HBB', buffer, len(HEADER))
        size = HEADER_SIZE + length + CHECKSUM_SIZE
        if len(buffer) < size:
            return None
        body = bytes(buffer[len(HEADER):size - CHECKSUM_SIZE])
        expected = buffer[size - CHECKSUM_SIZE]
        if checksum(body) != expected:
            raise FrameDecodeError("checksum mismatch: expected %02x, got %02x" % (expected, checksum(body)))
        try:
            function = FunctionCode(code)
        except ValueError as e:
            raise FrameDecodeError("unknown function code %02x" % code) from e
        del buffer[:size]
        return Frame(address, function, body[4:])


def encode_states(states) -> bytes:
    """ encodes (route, value) pairs """
    try:
        return bytes(b for route, value in states for b in (route, value))
    except ValueError as e:
        raise ValueError("route and value must each fit in a byte: %s" % e) from e


def decode_states(payload: bytes) -> tuple:
    """
    Decodes a payload of (route, value) byte pairs.
    >>> decode_states(b'\\x01\\x00\\x02\\x01')
    ((1, 0), (2, 1))
    """
    if len(payload) % 2:
        raise FrameDecodeError("state payload has odd length %d" % len(payload))
    return tuple((payload[i], payload[i + 1]) for i in range(0, len(payload), 2))


def encode_temperature_humidity(temperature: float, humidity: float) -> bytes:
    return struct.pack('>hH', round(temperature * 10), round(humidity * 10))


def decode_temperature_humidity(payload: bytes) -> tuple:
    """
    Decodes temperature (signed) and relative humidity (unsigned), both in tenths.
    >>> decode_temperature_humidity(b'\\xff\\x9c\\x01\\xf4')
    (-10.0, 50.0)
    """
    if len(payload) != 4:
        raise FrameDecodeError("temperature/humidity payload must be 4 bytes, got %d" % len(payload))
    temperature, humidity = struct.unpack('>hH', payload)
    return temperature / 10, humidity / 10
