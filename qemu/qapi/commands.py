"""
QAPI Commands

A `Command` describes one remote procedure call: its wire name, its
arguments, and how to interpret the value the server returns. Schema
derived command catalogs subclass `Command`; this module only defines
the handful of commands the sessions themselves need, plus
`RawCommand` for everything else::

    class BlockdevDel(Command):
        name = 'blockdev-del'

    qmp.execute(BlockdevDel(node_name='drive0'))
    qmp.execute(RawCommand('query-status'))
"""

from typing import (
    Any,
    Dict,
    Mapping,
    Optional,
    Tuple,
)

from .message import Message
from .models import Model, VersionInfo


class Command:
    """
    Base class for a single QAPI command.

    Keyword arguments name the command's arguments. Underscores are
    converted to dashes (QAPI member naming) and arguments whose value
    is None are omitted. An ``arguments`` mapping, if given, is used
    verbatim and is not converted.

    :param arguments: Verbatim arguments mapping.
    :param kwargs: Arguments, by Python-friendly name.
    """
    #: Wire name of the command.
    name: str = ''

    #: Type of the success value. A `Model` is built from the raw
    #: 'return' member; other types are checked, never coerced.
    #: When None, the raw JSON value is returned as-is.
    returns: Optional[type] = None

    def __init__(self, arguments: Optional[Mapping[str, object]] = None,
                 **kwargs: Any):
        if not self.name:
            raise TypeError(f"{type(self).__name__} has no wire name")
        self.arguments: Dict[str, object] = dict(arguments or {})
        self.arguments.update({
            key.replace('_', '-'): value
            for key, value in kwargs.items()
            if value is not None
        })

    def to_message(self) -> Message:
        """
        Build the wire envelope for this command.

        The 'arguments' member is omitted when there are no arguments.
        """
        msg = Message({'execute': self.name})
        if self.arguments:
            msg['arguments'] = self.arguments
        return msg

    def parse_return(self, value: object) -> Any:
        """
        Convert the raw 'return' member into this command's result type.

        `Model` types are constructed from the value; any other type is
        only checked, never coerced.

        :raise KeyError: If ``returns`` rejects the value.
        :raise TypeError: If the value is not of the ``returns`` type.
        """
        returns = self.returns
        if returns is None:
            return value
        if issubclass(returns, Model):
            return returns(value)

        accepted: Tuple[type, ...] = (returns,)
        if returns is float:
            accepted = (float, int)
        # bool is an int subclass; JSON true is never a number.
        if (not isinstance(value, accepted)
                or (isinstance(value, bool) and returns is not bool)):
            raise TypeError(
                f"'{self.name}' must return {returns.__name__}, "
                f"not {type(value).__name__}"
            )
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, {self.arguments!r})"


class RawCommand(Command):
    """
    An untyped command, named at construction time.

    :param name: Wire name of the command.
    :param arguments: Verbatim arguments mapping.
    :param kwargs: Arguments, by Python-friendly name.
    """
    def __init__(self, name: str,
                 arguments: Optional[Mapping[str, object]] = None,
                 **kwargs: Any):
        self.name = name
        super().__init__(arguments, **kwargs)


class QMPCapabilities(Command):
    """Leave capabilities negotiation mode; ``enable`` lists capabilities."""
    name = 'qmp_capabilities'


class QueryVersion(Command):
    """Return the version of the QEMU process."""
    name = 'query-version'
    returns = VersionInfo


class GuestSync(Command):
    """Echo ``id`` back; used to flush stale replies from the channel."""
    name = 'guest-sync'
