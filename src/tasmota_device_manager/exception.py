"""Exceptions module."""


class TasmotaError(Exception):
    """Base class for all errors raised by this package."""


class ScheduleError(TasmotaError):
    """Raised when a schedule cannot be compiled or allocated."""


class MissingFieldError(ScheduleError):
    """Raised when a field required by the selected intent is absent."""


class InvalidFormatError(ScheduleError):
    """Raised when a day mask, time string or date pattern does not parse."""


class OutOfRangeError(ScheduleError):
    """Raised when a slot or output index is outside the device limits."""


class InsufficientSlotsError(ScheduleError):
    """Raised when a timer allocation needs more slots than are available."""


class UnsupportedVariantError(ScheduleError):
    """Raised when the compiler does not know the intent variant."""


class TransportError(TasmotaError):
    """Raised when a command could not be delivered to the device."""


class DeviceResponseError(TasmotaError):
    """Raised when the device answered with an unreadable payload."""


class CommandValidationError(TasmotaError):
    """Raised when command arguments are invalid."""
