"""Exceptions raised inside the weather adapter."""


class WeatherPluginError(Exception):
    """Base class for adapter errors."""


class TransportError(WeatherPluginError):
    """The REST endpoint could not be reached or answered with an error status."""


class ParseError(WeatherPluginError):
    """The REST payload was not valid JSON or had an unexpected shape."""


class LookupMiss(WeatherPluginError, KeyError):
    """The requested node or metric is not present in the snapshot."""


class StateUninitialized(WeatherPluginError):
    """No weather snapshot has been fetched yet."""


class RegistrationClosedError(WeatherPluginError):
    """A property was attached after the host froze its registry."""
