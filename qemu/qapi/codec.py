"""
Line Codec

Both QMP and the guest agent frame every message as exactly one JSON
object followed by a single newline byte. `LineCodec` implements that
framing on top of any stream offering ``readline``, ``write`` and
``flush``, such as `qemu.qapi.stream.Stream`.
"""

import errno
import logging
from typing import (
    Any,
    Callable,
    Mapping,
    Optional,
    TypeVar,
)

from .commands import Command
from .error import DeserializationError, MalformedMessageError
from .message import Message


T = TypeVar('T')

#: A model is any callable that validates a JSON object into a value.
ModelT = Callable[[Mapping[str, Any]], T]


class LineCodec:
    """
    Reads and writes newline-delimited JSON messages.

    :param stream: The duplex stream; must support ``readline(limit)``,
                   ``write`` and ``flush``.
    :param limit: Maximum length of one incoming line, in bytes, or
                  None for no limit.
    :param logger: Logger used to trace raw traffic at DEBUG level.
    """
    #: Read buffer limit; large enough to accept query-qmp-schema
    _limit = (256 * 1024)

    logger = logging.getLogger(__name__)

    def __init__(self, stream: Any,
                 limit: Optional[int] = _limit,
                 logger: Optional[logging.Logger] = None):
        self.stream = stream
        self.limit = limit
        self.buffer = b''
        if logger is not None:
            self.logger = logger

    def _readline(self) -> bytes:
        if self.limit is None:
            return bytes(self.stream.readline())

        # Read one byte past the limit to tell "exactly at" from "over".
        line = bytes(self.stream.readline(self.limit + 1))
        if len(line) > self.limit:
            raise DeserializationError(
                f"Message exceeds the {self.limit} byte limit.", line
            )
        return line

    def decode_line(self, model: Optional[ModelT[T]] = None) -> Any:
        """
        Read and decode the next line.

        :param model: Optional callable (usually a class from
            `qemu.qapi.models`) to construct from the decoded object.

        :raise OSError: For underlying stream errors.
        :raise DeserializationError:
            When the line is not JSON, is oversized, or is missing its
            newline terminator.
        :raise UnexpectedTypeError: When the JSON is not an object.
        :raise MalformedMessageError: When ``model`` rejects the object.

        :return: The `Message` (or the ``model`` instance built from it),
                 or None when the stream is at EOF.
        """
        self.buffer = b''
        self.buffer = self._readline()
        self.logger.debug("<<< %r", self.buffer)

        if not self.buffer:
            return None

        if not self.buffer.endswith(b'\n'):
            raise DeserializationError(
                "Stream ended within a message.", self.buffer
            )

        msg = Message(self.buffer)
        if model is None:
            return msg
        return self.parse(msg, model)

    @staticmethod
    def parse(msg: Message, model: ModelT[T]) -> T:
        """
        Construct ``model`` from an already decoded message.

        :raise MalformedMessageError: When ``model`` rejects the object.
        """
        try:
            return model(msg)
        except (KeyError, TypeError, ValueError) as err:
            # Models may be wrapped in functools.partial().
            func = getattr(model, 'func', model)
            name = getattr(func, '__name__', 'message')
            raise MalformedMessageError(
                f"Did not understand {name}", err
            ) from err

    def write_message(self, msg: Message) -> None:
        """
        Write one message as a single line and flush it.

        :raise ValueError: JSON serialization failure.
        :raise TypeError: JSON serialization failure.
        :raise OSError: For underlying stream errors.
        """
        data = bytes(msg)
        self.logger.debug(">>> %r", data)

        # Raw (unbuffered) writers may accept only part of the line.
        view = memoryview(data + b'\n')
        while view:
            written = self.stream.write(view)
            if not written:
                raise BlockingIOError(
                    errno.EAGAIN, "Stream is not ready for writing"
                )
            view = view[written:]
        self.stream.flush()

    def write_command(self, command: Command) -> None:
        """
        Write ``command`` in its 'execute' envelope and flush it.

        :raise ValueError: JSON serialization failure.
        :raise TypeError: JSON serialization failure.
        :raise OSError: For underlying stream errors.
        """
        self.write_message(command.to_message())
