"""
The lifecycle of one relay sub-device multiplexed over a gateway connection.

A Relay owns the conduit to the device, a read loop that feeds inbound frames through the
middleware chain into the state store, and a write loop that polls the device on the keep-alive
interval. Going offline is one-way: it fires the shared shutdown signal, closes the conduit, and
notifies the offline callback exactly once.
"""
import logging
import math
import threading
import time

from relaybox.conduit.base import Conduit, ConduitClosedError, SynchronizedConduit
from relaybox.errors import RelayConfigError, RelayInitError
from relaybox.middleware import MiddlewareChain
from relaybox.properties import PropertyPostEvent, PropertyType, property_fn_map
from relaybox.protocol.frame import MAX_ADDRESS, READ_CHUNK_SIZE, FunctionCode, encode_frame, encode_states
from relaybox.protocol.poller import InquiryTask, WriteLoop
from relaybox.protocol.reader import ReadLoop
from relaybox.state import RelayState, StateChangedEvent, StateStore
from relaybox.support.events import EventSource
from relaybox.support.shutdown import ShutdownSignal

logger = logging.getLogger(__name__)

TIME_FORMAT = '%Y-%m-%d %H:%M:%S'


class RelayEvent:
    """ base class for relay lifecycle events. """
    def __init__(self, relay):
        self.relay = relay


class RelayOnlineEvent(RelayEvent):
    """ The relay's loops have started. """


class RelayOfflineEvent(RelayEvent):
    """ The relay has gone offline. """


class RelayConfig:
    """
    Construction settings for a relay.

    :param sub_device_id: the relay's address behind the gateway, 0-65535
    :param poll_interval: seconds between inquiries. Doubles as the keep-alive interval.
    :param offline_callback: called with the relay when it goes offline
    :param middlewares: stages applied to inbound frames, in order
    :param read_size: the most bytes requested per read from the conduit
    :param inquire_output_state: also poll the output state on the keep-alive interval
    """

    def __init__(self, sub_device_id=None, poll_interval=None, offline_callback=None, middlewares=(),
                 read_size=READ_CHUNK_SIZE, inquire_output_state=False):
        self.sub_device_id = sub_device_id
        self.poll_interval = poll_interval
        self.offline_callback = offline_callback
        self.middlewares = middlewares
        self.read_size = read_size
        self.inquire_output_state = inquire_output_state

    def validate(self):
        if isinstance(self.sub_device_id, bool) or not isinstance(self.sub_device_id, int) \
                or not 0 <= self.sub_device_id <= MAX_ADDRESS:
            raise RelayConfigError("sub_device_id must be an integer 0-%d, got %r" % (MAX_ADDRESS, self.sub_device_id))
        if isinstance(self.poll_interval, bool) or not isinstance(self.poll_interval, (int, float)) \
                or not math.isfinite(self.poll_interval) or self.poll_interval <= 0:
            raise RelayConfigError("poll_interval must be a finite positive number, got %r" % (self.poll_interval,))
        if isinstance(self.read_size, bool) or not isinstance(self.read_size, int) or self.read_size <= 0:
            raise RelayConfigError("read_size must be a positive integer, got %r" % (self.read_size,))
        if self.offline_callback is not None and not callable(self.offline_callback):
            raise RelayConfigError("offline_callback %r is not callable" % (self.offline_callback,))
        for m in self.middlewares:
            if not callable(m):
                raise RelayConfigError("middleware %r is not callable" % (m,))
        return self


class Relay:
    """
    A relay sub-device reached through a shared gateway connection.

    :param instance: the parent gateway/device handle. Held for callers, not used by the relay.
    :param conduit: the connected channel to the device
    :param config: the relay settings, validated on construction
    """

    def __init__(self, instance, conduit: Conduit, config: RelayConfig):
        if conduit is None:
            raise RelayConfigError("a connected conduit is required")
        config.validate()
        self.instance = instance
        self.config = config
        self.sub_device_id = config.sub_device_id
        self.keep_alive = config.poll_interval
        self.offline_callback = config.offline_callback
        self.shutdown = ShutdownSignal()
        self.conduit = SynchronizedConduit(conduit, self.shutdown)
        self.online_time = time.strftime(TIME_FORMAT)
        self.middlewares = MiddlewareChain(config.middlewares)
        self.events = EventSource()
        self.store = StateStore(self._state_changed)
        self.read_loop = None
        self.write_loop = None
        self._init_lock = threading.Lock()

    def __repr__(self):
        return 'Relay(%d)' % self.sub_device_id

    def use(self, *middlewares):
        """ appends middleware stages. Only allowed before the relay is started. """
        self.middlewares.use(*middlewares)

    def inquiry_tasks(self):
        tasks = [
            InquiryTask(self.inquiry_temperature_humidity, self.keep_alive),
            InquiryTask(self.inquiry_input_state, self.keep_alive),
        ]
        if self.config.inquire_output_state:
            tasks.append(InquiryTask(self.inquiry_output_state, self.keep_alive))
        return tasks

    def init(self):
        """
        Starts the read loop and the write loop.
        :raises RelayInitError: if the relay is offline, already started, or a loop cannot be started
        """
        with self._init_lock:
            if self.shutdown.is_set():
                raise RelayInitError("init relay %s failed: relay is offline" % self.sub_device_id)
            if self.read_loop is not None:
                raise RelayInitError("init relay %s failed: relay already started" % self.sub_device_id)
            self.middlewares.freeze()
            self.read_loop = ReadLoop(self, self.config.read_size)
            self.write_loop = WriteLoop(self.inquiry_tasks(), self.shutdown, self._inquiry_failed)
            try:
                self.read_loop.start()
                self.write_loop.start()
            except RuntimeError as e:
                self.offline()
                raise RelayInitError("init relay %s failed" % self.sub_device_id) from e

    def online(self, property_types=()):
        """
        Starts the relay and publishes the requested properties.
        :param property_types: the PropertyType values to publish once started
        :raises RelayInitError: if the relay could not be started. Nothing is published.
        """
        logger.info("relay %s online" % self.sub_device_id)
        self.init()
        self.events.fire(RelayOnlineEvent(self))
        self.auto_post_property(property_types)

    def offline(self):
        """
        Takes the relay offline. Safe to call any number of times, from any thread;
        only the first call closes the conduit and runs the offline callback.
        """
        if not self.shutdown.trigger():
            return
        logger.info("relay %s offline" % self.sub_device_id)
        self.conduit.close()
        self.events.fire(RelayOfflineEvent(self))
        if self.offline_callback is not None:
            try:
                self.offline_callback(self)
            except Exception:
                logger.exception("offline callback for relay %s failed" % self.sub_device_id)

    def _inquiry_failed(self, e):
        self.offline()

    def _state_changed(self, state: RelayState):
        self.events.fire(StateChangedEvent(self, state))

    @property
    def is_online(self) -> bool:
        return self.read_loop is not None and not self.shutdown.is_set()

    def join(self, timeout=None) -> bool:
        """ waits for the background threads to exit. Returns True if all have exited. """
        loops = [loop for loop in (self.read_loop, self.write_loop) if loop is not None]
        return all([loop.join(timeout) for loop in loops])

    def write_frame(self, function: FunctionCode, payload: bytes=b''):
        """
        Sends a frame addressed to this relay.
        :raises ConduitClosedError: once the relay is offline
        """
        if self.shutdown.is_set():
            raise ConduitClosedError("relay %s is offline" % self.sub_device_id)
        data = encode_frame(self.sub_device_id, function, payload)
        logger.debug("relay %s sending %s" % (self.sub_device_id, data.hex()))
        self.conduit.write(data)

    def inquiry_temperature_humidity(self):
        self.write_frame(FunctionCode.INQUIRE_TEMPERATURE_HUMIDITY)

    def inquiry_input_state(self):
        self.write_frame(FunctionCode.INQUIRE_INPUT_STATE)

    def inquiry_output_state(self):
        self.write_frame(FunctionCode.INQUIRE_OUTPUT_STATE)

    def set_output_state(self, route, value):
        """ switches one output route. The new state is applied when the relay reports it. """
        self.write_frame(FunctionCode.SET_OUTPUT_STATE, encode_states([(route, value)]))

    def get_property_fn_map(self) -> dict:
        return property_fn_map(self.store)

    def auto_post_property(self, property_types):
        """ fires a PropertyPostEvent with the current value of each requested property type """
        fn_map = self.get_property_fn_map()
        for property_type in property_types:
            try:
                fn = fn_map[PropertyType(property_type)]
            except (KeyError, ValueError):
                logger.warning("relay %s has no property %r" % (self.sub_device_id, property_type))
                continue
            self.events.fire(PropertyPostEvent(self, fn()))

    @property
    def state(self) -> RelayState:
        return self.store.snapshot

    @property
    def output_states(self):
        return self.store.snapshot.output_states

    @property
    def input_states(self):
        return self.store.snapshot.input_states

    @property
    def temperature_humidity(self):
        return self.store.snapshot.temperature_humidity
