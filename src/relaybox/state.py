"""
The in-memory snapshot of what a relay last reported.

The store has a single writer, the relay's read loop. Every update builds a new immutable
RelayState and swaps the reference, so readers on other threads always see a whole snapshot.
"""
import logging
from collections import namedtuple

from relaybox.protocol.frame import Frame, FunctionCode, decode_states, decode_temperature_humidity

logger = logging.getLogger(__name__)


OutputState = namedtuple('OutputState', 'route value')
InputState = namedtuple('InputState', 'route value')
TemperatureAndHumidity = namedtuple('TemperatureAndHumidity', 'temperature humidity')


class RelayState(namedtuple('RelayState', 'output_states input_states temperature_humidity')):
    """ the last known output states, input states and temperature/humidity of a relay """
    __slots__ = ()


EMPTY_STATE = RelayState((), (), TemperatureAndHumidity(0.0, 0.0))


class StateChangedEvent:
    """ fired after the store of a relay has been updated. """
    def __init__(self, relay, state: RelayState):
        self.relay = relay
        self.state = state


def merge_states(existing, updates):
    """
    Merges route states. An update replaces the entry with the same route in place;
    routes not seen before are appended in the order reported.
    >>> merge_states((OutputState(1, 0), OutputState(2, 0)), (OutputState(3, 1), OutputState(1, 1)))
    (OutputState(route=1, value=1), OutputState(route=2, value=0), OutputState(route=3, value=1))
    """
    merged = dict((s.route, s) for s in existing)
    for s in updates:
        merged[s.route] = s
    return tuple(merged.values())


class StateStore:

    def __init__(self, on_change=None):
        """
        :param on_change: called with the new RelayState after each update
        """
        self._state = EMPTY_STATE
        self._on_change = on_change

    @property
    def snapshot(self) -> RelayState:
        return self._state

    def _swap(self, state):
        self._state = state
        if self._on_change:
            self._on_change(state)

    def update_output_states(self, states):
        current = self._state
        self._swap(current._replace(output_states=merge_states(current.output_states, states)))

    def update_input_states(self, states):
        current = self._state
        self._swap(current._replace(input_states=merge_states(current.input_states, states)))

    def update_temperature_humidity(self, th: TemperatureAndHumidity):
        self._swap(self._state._replace(temperature_humidity=TemperatureAndHumidity(*th)))

    def apply(self, frame: Frame) -> bool:
        """
        Decodes a report frame and applies it. The payload is decoded in full before the
        store changes, so a malformed frame leaves the store untouched.
        :return: True if the store was updated, False if the frame carries no state.
        :raises FrameDecodeError: if the payload is malformed
        """
        function = frame.function
        if function == FunctionCode.OUTPUT_STATE:
            self.update_output_states([OutputState(*s) for s in decode_states(frame.payload)])
        elif function == FunctionCode.INPUT_STATE:
            self.update_input_states([InputState(*s) for s in decode_states(frame.payload)])
        elif function == FunctionCode.TEMPERATURE_HUMIDITY:
            self.update_temperature_humidity(TemperatureAndHumidity(*decode_temperature_humidity(frame.payload)))
        else:
            logger.debug("ignoring %r, it carries no state" % frame)
            return False
        return True
