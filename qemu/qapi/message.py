"""
QAPI Message Format

This module provides the `Message` class, which represents a single
JSON object sent to or received from a QMP server or a guest agent.
"""

import json
from typing import (
    Dict,
    Iterator,
    Mapping,
    MutableMapping,
    Optional,
    Union,
)

from .error import DeserializationError, UnexpectedTypeError


class Message(MutableMapping[str, object]):
    """
    Represents a single QAPI protocol message.

    Both protocols use a JSON object as their basic unit, so this is a
    :py:obj:`~collections.abc.MutableMapping`. It may be instantiated
    from another mapping (like a `dict`), or from raw `bytes` that are
    deserialized immediately::

        >>> msg = Message(b'{"return": {}}')
        >>> msg.kind
        'response'
        >>> bytes(Message({'execute': 'query-version'}))
        b'{"execute":"query-version"}'

    The wire form produced by `bytes()` never contains a newline, so it
    can always be framed as a single line.

    :param value: Initial value, if any.
    :raise DeserializationError: If ``value`` is bytes but not JSON.
    :raise UnexpectedTypeError: If ``value`` is JSON, but not an object.
    """
    # pylint: disable=too-many-ancestors

    #: Kind of message, decided by the presence of a distinguishing member.
    GREETING = 'greeting'
    EVENT = 'event'
    RESPONSE = 'response'
    COMMAND = 'command'
    UNKNOWN = 'unknown'

    def __init__(self, value: Union[bytes, Mapping[str, object]] = b'{}'):
        self._data: Optional[bytes] = None
        self._obj: Dict[str, object]

        if isinstance(value, bytes):
            self._obj = self._deserialize(value)
            self._data = value.rstrip(b'\r\n')
        else:
            self._obj = dict(value)

    def __getitem__(self, key: str) -> object:
        return self._obj[key]

    def __setitem__(self, key: str, value: object) -> None:
        self._obj[key] = value
        self._data = None

    def __delitem__(self, key: str) -> None:
        del self._obj[key]
        self._data = None

    def __iter__(self) -> Iterator[str]:
        return iter(self._obj)

    def __len__(self) -> int:
        return len(self._obj)

    def __repr__(self) -> str:
        return f"Message({self._obj!r})"

    def __str__(self) -> str:
        """Pretty-printed representation of this message."""
        return json.dumps(self._obj, indent=2)

    def __bytes__(self) -> bytes:
        """Compact `bytes` representing this message, without framing."""
        if self._data is None:
            self._data = self._serialize(self._obj)
        return self._data

    @property
    def kind(self) -> str:
        """
        Classify the message by the presence of a distinguishing member.

        The members are checked in a fixed order: 'QMP' (greeting),
        'event', 'return' or 'error' (response), and 'execute' or
        'exec-oob' (command). Anything else is `UNKNOWN`. The members
        themselves are not validated here; see `qemu.qapi.models`.
        """
        if 'QMP' in self._obj:
            return self.GREETING
        if 'event' in self._obj:
            return self.EVENT
        if 'return' in self._obj or 'error' in self._obj:
            return self.RESPONSE
        if 'execute' in self._obj or 'exec-oob' in self._obj:
            return self.COMMAND
        return self.UNKNOWN

    @classmethod
    def _serialize(cls, value: object) -> bytes:
        """
        Serialize a JSON object as `bytes`.

        :raise ValueError: When the object cannot be serialized.
        :raise TypeError: When the object cannot be serialized.
        """
        return json.dumps(value, separators=(',', ':')).encode('utf-8')

    @classmethod
    def _deserialize(cls, data: bytes) -> Dict[str, object]:
        """
        Deserialize JSON `bytes` into a native Python `dict`.

        :raise DeserializationError:
            If JSON deserialization fails for any reason.
        :raise UnexpectedTypeError:
            If the data does not represent a JSON object.
        """
        try:
            obj = json.loads(data.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as err:
            emsg = "Failed to deserialize message."
            raise DeserializationError(emsg, data) from err
        if not isinstance(obj, dict):
            raise UnexpectedTypeError(
                "Message is not a JSON object.",
                obj
            )
        return obj
