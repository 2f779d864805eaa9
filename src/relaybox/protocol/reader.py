"""
The relay's read loop: pumps frames from the conduit through the middleware chain into the state store.
"""
import logging

from relaybox.conduit.base import ConduitClosedError
from relaybox.protocol.frame import READ_CHUNK_SIZE, Frame, FrameDecodeError, FrameDecoder
from relaybox.protocol.loop import AsyncLoop

logger = logging.getLogger(__name__)


class ReadLoop(AsyncLoop):
    """
    Reads the relay's conduit on a background thread until the conduit fails or the relay goes offline.

    Frames are processed one at a time in arrival order. Any I/O or decode error ends the loop and
    takes the relay offline; nothing is retried.

    :param relay: the relay that owns the conduit, middleware chain and state store
    :param read_size: the most bytes to read per call. Frames are reassembled across reads.
    """

    def __init__(self, relay, read_size=READ_CHUNK_SIZE, decoder: FrameDecoder=None, log=logger):
        super().__init__(stop_event=relay.shutdown, log=log, name='read-%s' % relay.sub_device_id)
        self.relay = relay
        self.read_size = read_size
        self.decoder = decoder if decoder is not None else FrameDecoder()

    def loop(self):
        data = self.relay.conduit.input.read(self.read_size)
        if not data:
            raise ConduitClosedError("end of stream from relay %s" % self.relay.sub_device_id)
        try:
            frames = self.decoder.feed(data)
        except FrameDecodeError as e:
            for frame in e.frames:
                self.process_frame(frame)
            raise
        for frame in frames:
            self.process_frame(frame)

    def process_frame(self, frame: Frame):
        relay = self.relay
        frame = relay.middlewares(relay, frame)
        if not frame:
            return
        if frame.address != relay.sub_device_id:
            self.logger.debug("relay %s skipping %r for another device" % (relay.sub_device_id, frame))
            return
        relay.store.apply(frame)

    def exception_handler(self, e):
        relay = self.relay
        if self.stop_event.is_set():
            self.logger.debug("relay %s read loop stopped: %s" % (relay.sub_device_id, e))
        else:
            self.logger.error("relay %s read failed, going offline: %s" % (relay.sub_device_id, e))
        relay.offline()
