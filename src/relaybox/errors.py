class RelayError(Exception):
    """ Base class for errors raised to callers of a relay. """


class RelayConfigError(RelayError, ValueError):
    """ The relay configuration is invalid. Raised before any background work starts. """


class RelayInitError(RelayError):
    """ The relay could not start its read and write loops. """


class MiddlewareError(RelayError):
    """ Raised when the middleware chain is changed after the read loop started. """
