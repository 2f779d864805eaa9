"""
Typed access to a relay's cached state, as published to the gateway.
"""
from enum import Enum

from relaybox.state import StateStore
from relaybox.support.mixins import CommonEqualityMixin, StringerMixin


class PropertyType(Enum):
    OUTPUT_STATE = 'output_state'
    INPUT_STATE = 'input_state'
    TEMPERATURE_HUMIDITY = 'temperature_humidity'


class Property(CommonEqualityMixin, StringerMixin):
    """ a value read from the state store, tagged with its property type. """
    property_type = None

    def __init__(self, value):
        self.value = value


class OutputStatesProperty(Property):
    property_type = PropertyType.OUTPUT_STATE


class InputStatesProperty(Property):
    property_type = PropertyType.INPUT_STATE


class TemperatureHumidityProperty(Property):
    property_type = PropertyType.TEMPERATURE_HUMIDITY


class PropertyPostEvent:
    """ fired for each property a relay publishes. """
    def __init__(self, relay, property: Property):
        self.relay = relay
        self.property = property


def property_fn_map(store: StateStore) -> dict:
    """
    Builds the accessors for each property type. Accessors read the store's current snapshot
    and never block or talk to the device.
    """
    return {
        PropertyType.OUTPUT_STATE: lambda: OutputStatesProperty(store.snapshot.output_states),
        PropertyType.INPUT_STATE: lambda: InputStatesProperty(store.snapshot.input_states),
        PropertyType.TEMPERATURE_HUMIDITY: lambda: TemperatureHumidityProperty(store.snapshot.temperature_humidity),
    }
