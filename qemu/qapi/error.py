"""
QAPI Error Classes

This module provides the exception hierarchy used by the synchronous
QMP and QGA sessions. Clients may handle semantic failures (e.g. "the
server hung up mid-reply") without needing to know how the session
detected them.

`QAPIError` serves as the ancestor for all exceptions raised by this
package. Transport failures raised by the underlying stream (`OSError`
and its subclasses) are *not* re-encapsulated; they propagate unchanged.

Only `ExecuteError` describes a recoverable condition: the server
understood the command and reported a failure. Every other exception
leaves the session in an undefined state, and it should be discarded.

.. admonition:: Exception Hierarchy Reference

 |   `Exception`
 |    +-- `QAPIError`
 |         +-- `StateError`
 |         +-- `ExecuteError`
 |         +-- `UnexpectedEOFError`
 |         +-- `ProtocolError`
 |              +-- `DeserializationError`
 |              +-- `UnexpectedTypeError`
 |              +-- `MalformedMessageError`
 |              +-- `GreetingError`
 |              +-- `UnexpectedGreetingError`
 |              +-- `BadReplyError`
 |              +-- `NegotiationError`
 |              +-- `SyncError`
"""

from typing import TYPE_CHECKING, Optional, Tuple


if TYPE_CHECKING:
    from .commands import Command
    from .message import Message
    from .models import Response


class QAPIError(Exception):
    """Abstract error class for all errors originating from this package."""


class StateError(QAPIError):
    """
    An operation was attempted in a session state that does not allow it.

    :param error_message: Human-readable string describing the state error.
    :param state: The actual `Runstate` seen at the time of the call.
    :param required: The `Runstate` values that would have been accepted.
    """
    def __init__(self, error_message: str,
                 state: object, required: Tuple[object, ...] = ()):
        super().__init__(error_message)
        self.error_message = error_message
        self.state = state
        self.required = required


class UnexpectedEOFError(QAPIError, EOFError):
    """
    The server closed the stream while a message was still expected.

    This is distinct from a clean end-of-stream while idle, which is
    reported as ``None`` by the reading methods that allow it.
    """


class ProtocolError(QAPIError):
    """
    Abstract error class for protocol failures; the data was invalid.

    Semantically, these errors are generally the fault of either the
    protocol server or a bug in this library. No attempt is made to
    resynchronize the stream after one of them is raised.

    :param error_message: Human-readable string describing the error.
    """
    def __init__(self, error_message: str, *args: object):
        super().__init__(error_message, *args)
        #: Human-readable error message, without any prefix.
        self.error_message: str = error_message

    def __str__(self) -> str:
        return self.error_message


class DeserializationError(ProtocolError):
    """
    A line was not understood as JSON.

    When raised for a JSON failure, ``__cause__`` will be set to the
    `json.JSONDecodeError` (or `UnicodeDecodeError`) that prompted it.

    :param error_message: Human-readable string describing the error.
    :param raw: The raw `bytes` that prompted the failure.
    """
    def __init__(self, error_message: str, raw: bytes):
        super().__init__(error_message, raw)
        #: The raw `bytes` that were not understood.
        self.raw: bytes = raw

    def __str__(self) -> str:
        return "\n".join((
            super().__str__(),
            f"  raw bytes were: {self.raw!r}",
        ))


class UnexpectedTypeError(ProtocolError):
    """
    A line was JSON, but not a JSON object.

    :param error_message: Human-readable string describing the error.
    :param value: The deserialized JSON value that wasn't an object.
    """
    def __init__(self, error_message: str, value: object):
        super().__init__(error_message, value)
        #: The JSON value that was expected to be an object.
        self.value: object = value

    def __str__(self) -> str:
        return "\n".join((
            super().__str__(),
            f"  json value was: {self.value!r}",
        ))


class _WrappedProtocolError(ProtocolError):
    """
    Abstract exception class for protocol errors that wrap an Exception.

    :param error_message: Human-readable string describing the error.
    :param exc: The root-cause exception.
    """
    def __init__(self, error_message: str, exc: BaseException):
        super().__init__(error_message, exc)
        self.exc = exc

    def __str__(self) -> str:
        return f"{self.error_message}: {self.exc!s}"


class MalformedMessageError(_WrappedProtocolError):
    """
    A JSON object was received, but it did not have the expected shape.

    ``exc`` is the `KeyError` or `TypeError` raised by the model that
    rejected the object.
    """


class GreetingError(_WrappedProtocolError):
    """
    The first message from a QMP server was not understood as a Greeting.
    """


class NegotiationError(_WrappedProtocolError):
    """
    QMP capabilities negotiation was rejected by the server.

    ``exc`` is the `ExecuteError` describing the server's reply.
    """


class _MsgProtocolError(ProtocolError):
    """
    Abstract error class for protocol errors that carry a `Message`.

    Used when the message was mechanically understood, but was found to
    be inappropriate for the current state of the session.

    :param error_message: Human-readable string describing the error.
    :param msg: The `Message` that caused the error.
    """
    def __init__(self, error_message: str, msg: 'Message'):
        super().__init__(error_message, msg)
        #: The received `Message` that caused the error.
        self.msg = msg

    def __str__(self) -> str:
        return "\n".join([
            super().__str__(),
            f"  Message was: {self.msg!s}",
        ])


class UnexpectedGreetingError(_MsgProtocolError):
    """
    A QMP Greeting arrived after the session was already greeted.
    """


class BadReplyError(_MsgProtocolError):
    """
    A message arrived that is not of the kind the session was waiting for.

    For example: an object with neither a 'return' nor an 'error' member
    while awaiting a reply, or a reply while no command is outstanding.
    """


class SyncError(ProtocolError):
    """
    The guest agent answered guest-sync with something other than our nonce.

    This usually means a stale reply from an earlier session was still
    queued on the transport.

    :param error_message: Human-readable string describing the error.
    :param expected: The nonce that was sent.
    :param received: The value that came back.
    """
    def __init__(self, error_message: str, expected: int, received: object):
        super().__init__(error_message, expected, received)
        self.expected = expected
        self.received = received

    def __str__(self) -> str:
        return (f"{self.error_message}: "
                f"expected {self.expected!r}, got {self.received!r}")


class ExecuteError(QAPIError):
    """
    The server reported a failure for an executed command.

    This is the only error in this package that leaves the session
    usable; the next command may be executed normally.

    :param response: The error `Response` received.
    :param sent: The `Command` that caused the failure.
    """
    def __init__(self, response: 'Response',
                 sent: Optional['Command'] = None):
        assert response.error is not None
        super().__init__(response.error.desc)
        #: The sent `Command` that caused the failure.
        self.sent = sent
        #: The parsed error response.
        self.response = response
        #: The QAPI error class, as a string.
        self.error_class: str = response.error.class_
