"""
Synchronous Guest Agent Session

This module provides the `QGA` class, which drives the client side of a
QEMU Guest Agent connection over a blocking duplex stream, typically a
virtio-serial or vsock channel exposed on the host.

The guest agent has no greeting and no events. A session synchronizes
by sending ``guest-sync`` with a nonce and waiting for that same nonce
to be echoed back; after that, every line received is a reply to the
single command outstanding.
"""

# Copyright (C) 2026 The qemu.qapi authors
#
# This work is licensed under the terms of the GNU LGPL, version 2 or
# later. See the COPYING file in the top-level directory.

from functools import partial
import logging

from .commands import Command, GuestSync
from .error import BadReplyError, ExecuteError, SyncError
from .message import Message
from .models import Response
from .session import Runstate, Session, require
from .util import nonce


class QGA(Session):
    """
    Implements a synchronous guest agent client session.

    The session moves from `Runstate.UNSYNCED` to `Runstate.SYNCED` once
    ``guest-sync`` has echoed the nonce. Only ``guest-sync`` may be
    executed before then.

    :param stream: Duplex stream, such as a `qemu.qapi.stream.Stream`.
    :param nickname: Optional nickname for the session, used for logging.
    :param limit: Maximum length of one incoming line, in bytes.
    """
    #: Logger object for debugging messages from this session.
    logger = logging.getLogger(__name__)

    _ready_states = (Runstate.SYNCED,)
    _handshake_commands = {Runstate.UNSYNCED: GuestSync.name}
    _state_names = {
        Runstate.UNSYNCED: 'UNSYNCED',
        Runstate.SYNCED: 'SYNCED',
    }

    @require(Runstate.UNSYNCED)
    def handshake(self) -> int:
        """
        Synchronize with the guest agent.

        :raise ExecuteError: When the agent returns an error response.
        :raise SyncError: When the agent echoes anything but our nonce.
        :raise UnexpectedEOFError: When the agent hangs up.
        :raise ProtocolError: When the reply is not understood.
        :raise OSError: For underlying stream errors.

        :return: The nonce that was exchanged.
        """
        expected = nonce()
        sync = GuestSync(id=expected)
        self.logger.debug("Synchronizing with nonce %d ...", expected)

        response = self.execute(sync)
        if response.is_error:
            self._set_state(Runstate.BROKEN)
            self.logger.error("guest-sync failed: %s", response.error)
            raise ExecuteError(response, sync)

        with self._fatal_errors("guest-sync handshake failed"):
            # bool is an int subclass; 'true' never echoes a nonce.
            value = response.value
            if (not isinstance(value, int) or isinstance(value, bool)
                    or value != expected):
                raise SyncError(
                    "guest-sync handshake failed", expected, value
                )

        self._set_state(Runstate.SYNCED)
        return expected

    def _recv_response(self, command: Command) -> Response:
        # The agent sends nothing but replies; there is nothing to skip.
        msg = self._codec.decode_line()
        if msg is None:
            raise self._eof_error(command)

        if msg.kind != Message.RESPONSE:
            raise BadReplyError(
                "Guest agent reply is missing an 'error' or 'return' member",
                msg,
            )
        return self._codec.parse(msg, partial(Response, command=command))
