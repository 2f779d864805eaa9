"""
Stages applied to inbound frames before they reach the state store.

A stage receives the relay and the frame, and returns the frame to pass on - the same one,
a replacement, or None (or any other empty value) to drop it. Stages run on the relay's read loop thread in
registration order, so a stage must not block.
"""
import logging
from abc import abstractmethod

from relaybox.errors import MiddlewareError

logger = logging.getLogger(__name__)


class Middleware:

    @abstractmethod
    def transform(self, relay, data):
        """
        :return: the data to pass to the next stage, or None to drop it
        """
        raise NotImplementedError

    def __call__(self, relay, data):
        return self.transform(relay, data)


class FunctionMiddleware(Middleware):
    """ adapts a plain fn(relay, data) callable """

    def __init__(self, fn):
        self.fn = fn

    def transform(self, relay, data):
        return self.fn(relay, data)

    def __repr__(self):
        return 'FunctionMiddleware(%r)' % self.fn


class LoggingMiddleware(Middleware):
    def __init__(self, level=logging.DEBUG, log=logger):
        self.level = level
        self.logger = log

    def transform(self, relay, data):
        self.logger.log(self.level, "relay %s received %r" % (relay.sub_device_id, data))
        return data


class AddressFilter(Middleware):
    """ drops frames addressed to other sub-devices on a shared bus """

    def transform(self, relay, data):
        return data if data.address == relay.sub_device_id else None


class FunctionFilter(Middleware):
    """ passes only frames with one of the given function codes """

    def __init__(self, *codes):
        self.codes = frozenset(codes)

    def transform(self, relay, data):
        return data if data.function in self.codes else None


def as_middleware(stage) -> Middleware:
    if isinstance(stage, Middleware):
        return stage
    if not callable(stage):
        raise TypeError("middleware %r is not callable" % (stage,))
    return FunctionMiddleware(stage)


class MiddlewareChain:
    """
    An ordered list of stages folded left to right over each frame.
    An empty chain passes data through unchanged.
    """

    def __init__(self, stages=()):
        self._stages = [as_middleware(s) for s in stages]
        self._frozen = False

    @property
    def stages(self):
        return tuple(self._stages)

    def __len__(self):
        return len(self._stages)

    def use(self, *stages):
        """ appends stages to the end of the chain """
        if self._frozen:
            raise MiddlewareError("middleware cannot be added once the read loop has started")
        self._stages.extend(as_middleware(s) for s in stages)

    def freeze(self):
        self._frozen = True

    def __call__(self, relay, data):
        for stage in self._stages:
            data = stage(relay, data)
            if not data:
                logger.debug("frame dropped by %r" % stage)
                return None
        return data
