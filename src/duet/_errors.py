"""Duet error hierarchy.

All duet-specific errors inherit from DuetError for easy catching.
"""


class DuetError(Exception):
    """Base error for all duet operations."""


class ConfigError(DuetError):
    """Invalid or missing configuration."""


class UnsupportedTypeError(DuetError, TypeError):
    """A value outside the codec's closed type set (or malformed wire bytes)."""


class ProtocolError(DuetError):
    """A wire envelope could not be parsed."""


class DeliveryError(DuetError):
    """The transport could not deliver a message."""


class DuplicateBindingError(DuetError):
    """An output name is already bound in this session."""


class UnknownBindingError(DuetError, KeyError):
    """A render was published for a binding that is not registered."""

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0]) if self.args else ""


class SessionError(DuetError):
    """Unknown or closed session."""


class UnsetSlotAccess(DuetError):
    """A computation read an input slot before any event arrived.

    Not a failure: the reactive engine treats it as a request to abstain.

    Attributes:
        input_name: The slot that was read while unset.

    """

    def __init__(self, input_name: str) -> None:
        super().__init__(f"input {input_name!r} has not been set")
        self.input_name = input_name


class ScriptInvocationError(DuetError):
    """A rendering script raised while being invoked for a surface.

    Attributes:
        binding_name: The surface whose render failed.

    """

    def __init__(self, binding_name: str, message: str) -> None:
        super().__init__(f"{binding_name}: {message}")
        self.binding_name = binding_name
