"""
QEMU QMP and Guest Agent synchronous session library.

This package provides blocking, single-threaded client sessions for the
two JSON-line protocols spoken by QEMU: the QEMU Machine Protocol
(`QMP`) and the QEMU Guest Agent protocol (`QGA`). Both run over any
duplex byte stream; `Stream` joins a separate read half and write half
into one.

All errors raised by this library derive from `QAPIError`, see
`qemu.qapi.error` for additional detail. Transport errors from the stream
propagate unchanged as `OSError`.
"""

# Copyright (C) 2026 The qemu.qapi authors
#
# This work is licensed under the terms of the GNU LGPL, version 2 or
# later. See the COPYING file in the top-level directory.

import logging

from .commands import (
    Command,
    GuestSync,
    QMPCapabilities,
    QueryVersion,
    RawCommand,
)
from .error import (
    BadReplyError,
    ExecuteError,
    GreetingError,
    NegotiationError,
    ProtocolError,
    QAPIError,
    StateError,
    SyncError,
    UnexpectedEOFError,
    UnexpectedGreetingError,
)
from .message import Message
from .models import (
    ErrorClass,
    ErrorInfo,
    Event,
    Greeting,
    QMPCapability,
    Response,
    Timestamp,
    VersionInfo,
)
from .qga import QGA
from .qmp import QMP
from .session import Runstate
from .stream import Stream


# Suppress logging unless an application engages it.
logging.getLogger('qemu.qapi').addHandler(logging.NullHandler())


__all__ = (
    # Sessions and transport
    'QMP',
    'QGA',
    'Stream',
    'Runstate',

    # Commands
    'Command',
    'RawCommand',
    'QMPCapabilities',
    'QueryVersion',
    'GuestSync',

    # Messages and models
    'Message',
    'Greeting',
    'QMPCapability',
    'VersionInfo',
    'Response',
    'ErrorInfo',
    'ErrorClass',
    'Event',
    'Timestamp',

    # Exceptions, most generic to most explicit
    'QAPIError',
    'StateError',
    'ExecuteError',
    'UnexpectedEOFError',
    'ProtocolError',
    'GreetingError',
    'UnexpectedGreetingError',
    'BadReplyError',
    'NegotiationError',
    'SyncError',
)
