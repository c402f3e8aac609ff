"""
Synchronous QMP Session

This module provides the `QMP` class, which drives the client side of
a QEMU Machine Protocol connection over a blocking duplex stream.

QMP interleaves command replies with asynchronous events on a single
input channel. While a reply is awaited, any events that arrive first
are queued, in arrival order, and can be collected with `QMP.events()`.

Basic usage looks like this::

  sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
  sock.connect('/tmp/qemu.sock')
  with QMP.from_socket(sock, 'vm0') as qmp:
      greeting = qmp.handshake()
      status = qmp.command('query-status')
      for event in qmp.events():
          print(event.name, event.data)
"""

# Copyright (C) 2026 The qemu.qapi authors
#
# Based on the QEMU Monitor Protocol Python class by
#  Luiz Capitulino <lcapitulino@redhat.com>
#
# This work is licensed under the terms of the GNU LGPL, version 2 or
# later. See the COPYING file in the top-level directory.

from functools import partial
import logging
from typing import Any, List, Optional

from .codec import LineCodec
from .commands import Command, QMPCapabilities, QueryVersion
from .error import (
    BadReplyError,
    ExecuteError,
    GreetingError,
    MalformedMessageError,
    NegotiationError,
    UnexpectedEOFError,
    UnexpectedGreetingError,
)
from .message import Message
from .models import Event, Greeting, Response
from .session import Runstate, Session, require


class QMP(Session):
    """
    Implements a synchronous QMP client session.

    The session moves from `Runstate.UNAUTHENTICATED` to
    `Runstate.GREETED` once the greeting has been read, and to
    `Runstate.NEGOTIATED` once ``qmp_capabilities`` has succeeded. Only
    ``qmp_capabilities`` may be executed before negotiation completes.
    Any error other than `ExecuteError` leaves the session
    `Runstate.BROKEN`.

    :param stream: Duplex stream, such as a `qemu.qapi.stream.Stream`.
    :param nickname: Optional nickname for the session, used for logging.
    :param limit: Maximum length of one incoming line, in bytes.
    """
    #: Logger object for debugging messages from this session.
    logger = logging.getLogger(__name__)

    _ready_states = (Runstate.NEGOTIATED,)
    _handshake_commands = {Runstate.GREETED: QMPCapabilities.name}
    _state_names = {Runstate.NEGOTIATED: 'NEGOTIATED'}

    def __init__(self, stream: Any,
                 nickname: Optional[str] = None,
                 limit: Optional[int] = LineCodec._limit):
        super().__init__(stream, nickname, limit)
        self._events: List[Event] = []
        self._greeting: Optional[Greeting] = None

    @property
    def greeting(self) -> Optional[Greeting]:
        """The `Greeting` from the QMP server, if one was read."""
        return self._greeting

    def events(self) -> List[Event]:
        """
        Drain the event queue.

        :return: Queued events in arrival order; the queue is left empty.
        """
        events, self._events = self._events, []
        return events

    @require(Runstate.UNAUTHENTICATED)
    def read_greeting(self) -> Greeting:
        """
        Read the server greeting; it must be the first message.

        :raise UnexpectedEOFError: When the server hangs up first.
        :raise GreetingError: When the first message is not a Greeting.
        :raise OSError: For underlying stream errors.

        :return: The `Greeting` object given by the server.
        """
        self.logger.debug("Awaiting greeting ...")

        with self._fatal_errors("Failed to receive Greeting"):
            try:
                greeting = self._codec.decode_line(Greeting)
            except MalformedMessageError as err:
                emsg = "Did not understand Greeting"
                raise GreetingError(emsg, err) from err
            if greeting is None:
                raise UnexpectedEOFError("Stream closed before the greeting")

        self._greeting = greeting
        self.logger.debug("Greeted by QEMU %s", greeting.version)
        self._set_state(Runstate.GREETED)
        return greeting

    @require(Runstate.UNAUTHENTICATED)
    def handshake(self) -> Greeting:
        """
        Read the greeting and negotiate capabilities.

        :raise UnexpectedEOFError: When the server hangs up early.
        :raise GreetingError: When the greeting is not understood.
        :raise NegotiationError: When ``qmp_capabilities`` is rejected.
        :raise ProtocolError: When the negotiation reply is not understood.
        :raise OSError: For underlying stream errors.

        :return: The `Greeting`, unchanged.
        """
        greeting = self.read_greeting()

        self.logger.debug("Negotiating capabilities ...")
        response = self.execute(QMPCapabilities())
        with self._fatal_errors("Negotiation failed"):
            try:
                response.result()
            except ExecuteError as err:
                raise NegotiationError("Negotiation failed", err) from err

        self._set_state(Runstate.NEGOTIATED)
        return greeting

    def _recv_response(self, command: Command) -> Response:
        while True:
            msg: Optional[Message] = self._codec.decode_line()
            if msg is None:
                raise self._eof_error(command)

            kind = msg.kind
            if kind == Message.GREETING:
                raise UnexpectedGreetingError("Unexpected greeting", msg)
            if kind == Message.EVENT:
                self._queue_event(msg)
                continue
            if kind == Message.RESPONSE:
                return self._codec.parse(
                    msg, partial(Response, command=command)
                )

            raise BadReplyError(
                "QMP reply is missing an 'error' or 'return' member", msg
            )

    def _queue_event(self, msg: Message) -> None:
        event = self._codec.parse(msg, Event)
        self.logger.debug("Queueing event '%s'", event.name)
        self._events.append(event)

    @require(Runstate.NEGOTIATED)
    def wait_event(self) -> Optional[Event]:
        """
        Block until an event is available and return it.

        Queued events are returned first, oldest first. Only use this
        when no command is outstanding; a reply arriving now cannot be
        matched to anything.

        :raise BadReplyError: When a reply arrives instead.
        :raise ProtocolError: When a message is not understood.
        :raise OSError: For underlying stream errors.

        :return: The event, or None if the server closed the stream.
        """
        if self._events:
            return self._events.pop(0)

        with self._fatal_errors("Failed to receive event"):
            msg: Optional[Message] = self._codec.decode_line()
            if msg is None:
                self.logger.debug("Stream closed while awaiting events.")
                return None

            if msg.kind == Message.GREETING:
                raise UnexpectedGreetingError("Unexpected greeting", msg)
            if msg.kind != Message.EVENT:
                raise BadReplyError(
                    "Received a message while no command was pending", msg
                )
            return self._codec.parse(msg, Event)

    def nop(self) -> None:
        """
        Execute ``query-version`` and discard the result.

        Events that arrive before the reply are queued, which makes this
        usable to poll for pending events.

        :raise ExecuteError: When the server returns an error response.
        """
        self.execute(QueryVersion()).result()
