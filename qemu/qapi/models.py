"""
QAPI Data Models

This module provides simplistic data classes that represent the few
structures that the QMP and guest agent protocols mandate; they are used
to verify that incoming data is well-formed.
"""
# pylint: disable=too-few-public-methods

from collections import abc
import copy
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
)

from .error import ExecuteError
from .util import subdict_match


if TYPE_CHECKING:
    from .commands import Command


class Model:
    """
    Abstract data model, representing some QAPI object of some kind.

    :param raw: The raw object to be validated.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        if not isinstance(raw, abc.Mapping):
            raise TypeError(f"'{self._name}' must be a JSON object")
        self._raw = raw

    def _check_key(self, key: str) -> None:
        if key not in self._raw:
            raise KeyError(f"'{self._name}' object requires '{key}' member")

    def _check_value(self, key: str, type_: type, typestr: str) -> None:
        assert key in self._raw
        value = self._raw[key]
        # bool is an int subclass; JSON true is never a number.
        if isinstance(value, bool) and type_ is int:
            value = None
        if not isinstance(value, type_):
            raise TypeError(
                f"'{self._name}' member '{key}' must be a {typestr}"
            )

    def _check_member(self, key: str, type_: type, typestr: str) -> None:
        self._check_key(key)
        self._check_value(key, type_, typestr)

    @property
    def _name(self) -> str:
        return type(self).__name__

    def asdict(self) -> Dict[str, object]:
        """Return a deep copy of the raw object as a garden-variety dict."""
        return dict(copy.deepcopy(self._raw))

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        assert isinstance(other, Model)
        return dict(self._raw) == dict(other._raw)

    def __repr__(self) -> str:
        return f"{self._name}({dict(self._raw)!r})"


# -----------------
# Section: Greeting
# -----------------


class QMPCapability(Enum):
    """Capabilities a QMP server may advertise that this package knows of."""
    #: Out-of-band command execution.
    OOB = 'oob'


class VersionTriple(Model):
    """
    The 'qemu' member of `VersionInfo`.

    :param raw: The raw VersionTriple object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        self.major: int
        self.minor: int
        self.micro: int

        for key in ('major', 'minor', 'micro'):
            self._check_member(key, int, "integer")
            setattr(self, key, self._raw[key])

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.micro}"


class VersionInfo(Model):
    """
    Version of the QEMU process at the other end of the connection.

    :param raw: The raw VersionInfo object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        #: 'qemu' member
        self.qemu: VersionTriple
        #: 'package' member
        self.package: str

        self._check_member('qemu', abc.Mapping, "JSON object")
        self.qemu = VersionTriple(self._raw['qemu'])

        self._check_member('package', str, "string")
        self.package = self._raw['package']

    def __str__(self) -> str:
        if self.package:
            return f"{self.qemu!s} ({self.package.strip()})"
        return str(self.qemu)


class QMPGreeting(Model):
    """
    Defined in qmp-spec.txt, section 2.2, "Server Greeting".

    :param raw: The raw QMPGreeting object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        #: 'version' member
        self.version: VersionInfo
        #: 'capabilities' member, as advertised; may contain unknown names
        self.capabilities: Sequence[object]

        self._check_member('version', abc.Mapping, "JSON object")
        self.version = VersionInfo(self._raw['version'])

        self._check_member('capabilities', list, "JSON array")
        self.capabilities = self._raw['capabilities']


class Greeting(Model):
    """
    Defined in qmp-spec.txt, section 2.2, "Server Greeting".

    This is the capabilities structure a QMP server sends once, as the
    very first message of a connection.

    :param raw: The raw Greeting object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        #: 'QMP' member
        self.QMP: QMPGreeting  # pylint: disable=invalid-name

        self._check_member('QMP', abc.Mapping, "JSON object")
        self.QMP = QMPGreeting(self._raw['QMP'])

    @property
    def version(self) -> VersionInfo:
        """Shorthand for ``QMP.version``."""
        return self.QMP.version

    def capabilities(self) -> List[QMPCapability]:
        """
        Return the advertised capabilities that this package recognizes.

        Capabilities added by newer versions of QEMU are silently ignored.
        """
        caps = []
        for name in self.QMP.capabilities:
            try:
                caps.append(QMPCapability(name))
            except (ValueError, TypeError):
                continue
        return caps

    def supports_oob(self) -> bool:
        """True if the server advertises out-of-band command execution."""
        return QMPCapability.OOB in self.capabilities()


# ------------------
# Section: Responses
# ------------------


class ErrorClass(Enum):
    """
    Error classes a QAPI server may report.

    Servers may send classes not listed here; `ErrorInfo.class_` always
    holds the string as received.
    """
    GENERIC_ERROR = 'GenericError'
    COMMAND_NOT_FOUND = 'CommandNotFound'
    DEVICE_NOT_ACTIVE = 'DeviceNotActive'
    DEVICE_NOT_FOUND = 'DeviceNotFound'
    KVM_MISSING_CAP = 'KVMMissingCap'


class ErrorInfo(Model):
    """
    Defined in qmp-spec.txt, section 2.4.2, "error".

    :param raw: The raw ErrorInfo object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        #: 'class' member, with an underscore to avoid conflicts in Python.
        self.class_: str
        #: 'desc' member
        self.desc: str

        self._check_member('class', str, "string")
        self.class_ = self._raw['class']

        self._check_member('desc', str, "string")
        self.desc = self._raw['desc']

    @property
    def error_class(self) -> Optional[ErrorClass]:
        """The `ErrorClass` for ``class_``, or None if it is not known."""
        try:
            return ErrorClass(self.class_)
        except ValueError:
            return None

    def __str__(self) -> str:
        return f"{self.class_}: {self.desc}"


class Response(Model):
    """
    Defined in qmp-spec.txt, section 2.4, "Commands Responses".

    A response holds either a success value or an `ErrorInfo`. When
    constructed for a `Command`, the success value is converted with
    the command's ``returns`` callable.

    :param raw: The raw Response object.
    :param command: The command this response answers, if known.
    :raise KeyError: If neither 'return' nor 'error' is present.
    :raise TypeError: If any members have the wrong type.
    :raise ValueError: If the command rejects the returned value.
    """
    def __init__(self, raw: Mapping[str, Any],
                 command: Optional['Command'] = None):
        super().__init__(raw)
        #: The command this response answers, if known.
        self.command = command
        #: 'return' member, converted by ``command.returns``
        self.value: Any = None
        #: 'error' member
        self.error: Optional[ErrorInfo] = None
        #: 'id' member
        # pylint: disable=invalid-name
        self.id: Optional[object] = self._raw.get('id')

        if 'error' in self._raw:
            self._check_value('error', abc.Mapping, "JSON object")
            self.error = ErrorInfo(self._raw['error'])
        elif 'return' in self._raw:
            self.value = self._raw['return']
            if command is not None:
                self.value = command.parse_return(self.value)
        else:
            raise KeyError(
                f"'{self._name}' object requires 'return' or 'error' member"
            )

    @property
    def is_error(self) -> bool:
        """True if the server reported a failure."""
        return self.error is not None

    def result(self) -> Any:
        """
        Return the success value, or raise the server's error.

        :raise ExecuteError: When this is an error response.
        """
        if self.error is not None:
            raise ExecuteError(self, self.command)
        return self.value


# ---------------
# Section: Events
# ---------------


class Timestamp(Model):
    """
    Defined in qmp-spec.txt, section 2.5, "Asynchronous events".

    :param raw: The raw Timestamp object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        self.seconds: int
        self.microseconds: int

        self._check_member('seconds', int, "integer")
        self.seconds = self._raw['seconds']
        self._check_member('microseconds', int, "integer")
        self.microseconds = self._raw['microseconds']

    def __float__(self) -> float:
        return self.seconds + self.microseconds / 1000000


class Event(Model):
    """
    Defined in qmp-spec.txt, section 2.5, "Asynchronous events".

    :param raw: The raw Event object.
    :raise KeyError: If any required fields are absent.
    :raise TypeError: If any required fields have the wrong type.
    """
    def __init__(self, raw: Mapping[str, Any]):
        super().__init__(raw)
        #: 'event' member
        self.name: str
        #: 'data' member; an empty dict when absent
        self.data: Any = {}
        #: 'timestamp' member
        self.timestamp: Optional[Timestamp] = None

        self._check_member('event', str, "string")
        self.name = self._raw['event']

        if 'data' in self._raw:
            self.data = self._raw['data']

        if 'timestamp' in self._raw:
            self._check_value('timestamp', abc.Mapping, "JSON object")
            self.timestamp = Timestamp(self._raw['timestamp'])

    def matches(self, name: Optional[str] = None,
                match: Optional[Mapping[str, object]] = None) -> bool:
        """
        Check this event against a name and optional data criteria.

        :param name: Event name to match, or None to match any name.
        :param match: Matching subdict for ``data``.
            See `qemu.qapi.util.subdict_match`.
        """
        if name is not None and name != self.name:
            return False
        return subdict_match(self.data, match)
