"""
Generic Synchronous Session Support

This module provides `Session`, the blocking request/response machinery
shared by the QMP and guest agent sessions: ownership of the stream,
the `Runstate` state machine, and the "write one command line, read one
reply line" execution cycle.

There is no background reader, no internal timeout and no locking. Each
operation blocks the calling thread until a full line is available or
the stream reports EOF or an error. One session must not be used from
more than one thread at a time.
"""

from contextlib import contextmanager
from enum import Enum
from functools import wraps
import logging
import socket
from types import TracebackType
from typing import (
    Any,
    Callable,
    Iterator,
    Mapping,
    Optional,
    Type,
    TypeVar,
    cast,
)

from .codec import LineCodec
from .commands import Command, RawCommand
from .error import ExecuteError, StateError, UnexpectedEOFError
from .models import Response
from .stream import Stream
from .util import exception_summary, pretty_traceback


class Runstate(Enum):
    """Session runstate."""
    #: Stream open, handshake not started.
    UNAUTHENTICATED = 'unauthenticated'
    #: The QMP greeting has been read; negotiation is pending.
    GREETED = 'greeted'
    #: Handshake complete; ready for arbitrary commands.
    READY = 'ready'
    #: A fatal error occurred; the session must be discarded.
    BROKEN = 'broken'
    #: The stream was closed or handed back with `Session.into_inner()`.
    CLOSED = 'closed'

    # Protocol-specific names; sessions also use them in logs and repr.
    UNSYNCED = 'unauthenticated'
    NEGOTIATED = 'ready'
    SYNCED = 'ready'


_SessionT = TypeVar('_SessionT', bound='Session')
F = TypeVar('F', bound=Callable[..., Any])  # pylint: disable=invalid-name


def _state_message(session: 'Session', state: Runstate) -> str:
    name = type(session).__name__
    if state == Runstate.BROKEN:
        return f"{name} suffered a fatal error and is unusable."
    if state == Runstate.CLOSED:
        return f"{name} is closed."
    if state == Runstate.READY:
        return f"{name} has already completed its handshake."
    return f"{name} has not completed its handshake."


def require(*required: Runstate) -> Callable[[F], F]:
    """
    Decorator: protect a method so it can only be run in certain `Runstate`s.

    :param required: The `Runstate` values allowing this method.
    :raise StateError: When the session is in any other `Runstate`.
    """
    def _decorator(func: F) -> F:
        @wraps(func)
        def _wrapper(session: 'Session', *args: Any, **kwargs: Any) -> Any:
            state = session.runstate
            if state not in required:
                raise StateError(
                    _state_message(session, state), state, required
                )
            return func(session, *args, **kwargs)

        return cast(F, _wrapper)

    return _decorator


class Session:
    """
    Session implements the synchronous command/response cycle.

    Subclasses provide the handshake and `_recv_response()`, which
    decides what to do with each incoming line while a reply is
    awaited.

    :param stream: Duplex stream, such as a `qemu.qapi.stream.Stream`.
        The session takes ownership of it.
    :param nickname:
        Name used for logging messages, if any. By default, messages
        log to the module's logger, e.g. 'qemu.qapi.qmp'; a named
        session logs to 'qemu.qapi.qmp.${nickname}'.
    :param limit: Maximum length of one incoming line, in bytes, or
        None for no limit.
    """
    #: Logger object for debugging messages from this session.
    logger = logging.getLogger(__name__)

    #: States in which arbitrary commands may be executed.
    _ready_states = (Runstate.READY,)

    #: Commands allowed before the handshake has completed.
    _handshake_commands: Mapping[Runstate, str] = {}

    #: Names reported for states in logs and repr, where they differ.
    _state_names: Mapping[Runstate, str] = {}

    def __init__(self, stream: Any,
                 nickname: Optional[str] = None,
                 limit: Optional[int] = LineCodec._limit):
        #: The nickname for this session, if any.
        self.name: Optional[str] = nickname
        if self.name is not None:
            self.logger = self.logger.getChild(self.name)

        self._codec = LineCodec(stream, limit, self.logger)
        self._runstate = Runstate.UNAUTHENTICATED

    @classmethod
    def from_socket(cls: Type[_SessionT], sock: socket.socket,
                    nickname: Optional[str] = None) -> _SessionT:
        """
        Create a session on an already connected socket.

        See `Stream.from_socket`; the socket remains owned by the caller.
        """
        return cls(Stream.from_socket(sock), nickname)

    def __repr__(self) -> str:
        cls_name = type(self).__name__
        tokens = []
        if self.name is not None:
            tokens.append(f"name={self.name!r}")
        tokens.append(f"runstate={self._state_name(self.runstate)}")
        return f"<{cls_name} {' '.join(tokens)}>"

    def __enter__(self: _SessionT) -> _SessionT:
        return self

    def __exit__(self,
                 exc_type: Optional[Type[BaseException]],
                 exc_val: Optional[BaseException],
                 exc_tb: Optional[TracebackType]) -> None:
        self.close()

    def _state_name(self, state: Runstate) -> str:
        return self._state_names.get(state, state.name)

    @property
    def runstate(self) -> Runstate:
        """The current `Runstate` of the session."""
        return self._runstate

    @property
    def stream(self) -> Any:
        """The underlying duplex stream."""
        return self._codec.stream

    def _set_state(self, state: Runstate) -> None:
        if state == self._runstate:
            return
        self.logger.debug("Transitioning from '%s' to '%s'.",
                          self._state_name(self._runstate),
                          self._state_name(state))
        self._runstate = state

    @contextmanager
    def _fatal_errors(self, emsg: str) -> Iterator[None]:
        """
        Mark the session `BROKEN` if the body raises anything but an
        `ExecuteError` (the only recoverable failure).
        """
        try:
            yield
        except ExecuteError:
            raise
        except BaseException as err:
            self._set_state(Runstate.BROKEN)
            self.logger.error("%s: %s", emsg, exception_summary(err))
            self.logger.debug("%s:\n%s\n", emsg, pretty_traceback())
            raise

    def _check_command(self, command: Command) -> None:
        state = self.runstate
        if state in self._ready_states:
            return
        if self._handshake_commands.get(state) == command.name:
            return
        raise StateError(
            f"Cannot execute '{command.name}': "
            f"{_state_message(self, state)}",
            state, self._ready_states,
        )

    def into_inner(self) -> Any:
        """
        Hand the stream back to the caller.

        The session is `CLOSED` afterwards; the stream is left open.
        """
        self._set_state(Runstate.CLOSED)
        return self._codec.stream

    def close(self) -> None:
        """
        Close the stream. Closing a closed session does nothing.
        """
        if self.runstate == Runstate.CLOSED:
            return
        self._set_state(Runstate.CLOSED)
        self._codec.stream.close()

    def write_command(self, command: Command) -> None:
        """
        Send ``command`` without waiting for its reply.

        :raise StateError: When the session state does not allow it.
        :raise OSError: For underlying stream errors.
        """
        self._check_command(command)
        with self._fatal_errors(f"Failed to send '{command.name}'"):
            self._codec.write_command(command)

    def _recv_response(self, command: Command) -> Response:
        raise NotImplementedError

    def read_response(self, command: Command) -> Response:
        """
        Read the reply to a command previously sent with `write_command()`.

        :param command: The command the reply is for; its ``returns``
            type is used to convert a success value.

        :raise UnexpectedEOFError: When the stream ends before the reply.
        :raise ProtocolError: When the reply is not understood.
        :raise OSError: For underlying stream errors.

        :return: The `Response`; use `Response.result()` to unwrap it.
        """
        self._check_command(command)
        with self._fatal_errors(f"Failed to read reply to '{command.name}'"):
            return self._recv_response(command)

    def execute(self, command: Command) -> Response:
        """
        Send ``command`` and block until its reply arrives.

        A reply carrying an error is returned, not raised; the session
        remains usable afterwards.

        :raise StateError: When the session state does not allow it.
        :raise UnexpectedEOFError: When the stream ends before the reply.
        :raise ProtocolError: When the reply is not understood.
        :raise OSError: For underlying stream errors.
        """
        self.write_command(command)
        return self.read_response(command)

    def command(self, name: str,
                arguments: Optional[Mapping[str, object]] = None,
                **kwargs: Any) -> Any:
        """
        Execute an untyped command and return its value.

        Keyword arguments have underscores converted to dashes; see
        `qemu.qapi.commands.Command`.

        :raise ExecuteError: When the server returns an error response.
        """
        return self.execute(RawCommand(name, arguments, **kwargs)).result()

    def _eof_error(self, command: Command) -> UnexpectedEOFError:
        return UnexpectedEOFError(
            f"Stream closed while awaiting reply to '{command.name}'"
        )
