"""
Miscellaneous Utilities

This module provides the nonce source used by the guest agent
handshake, and logging helpers such as `exception_summary()` and
`pretty_traceback()` used to add information to the logging stream.
"""

import itertools
import random
import sys
import threading
import traceback
from typing import Any, Mapping, Optional


# --------------------------
# Section: Utility Functions
# --------------------------


_nonce_lock = threading.Lock()
_nonce_counter = itertools.count(random.randrange(1, 2**31))


def nonce() -> int:
    """
    Return a fresh nonce for a guest-sync handshake.

    Values come from a process-local counter that starts at a random
    offset, so successive handshakes never reuse a value and a stale
    reply left behind by another process is unlikely to match. The
    nonce is not a security token.
    """
    with _nonce_lock:
        return next(_nonce_counter)


def subdict_match(value: Any, match: Optional[Any]) -> bool:
    """
    Check if ``value`` matches optional match criteria.

    The match criteria takes the form of a matching subdict. The value
    is checked to be a superset of the subdict, recursively, with
    matching values whenever the subdict values are not None.

    Examples, with the subdict queries on the left:
     - None matches any object.
     - {"foo": None} matches {"foo": {"bar": 1}}
     - {"foo": {"abc": None}} does not match {"foo": {"bar": 1}}
     - {"foo": {"rab": 2}} matches {"foo": {"bar": 1, "rab": 2}}
    """
    if match is None:
        return True

    if isinstance(match, Mapping):
        if not isinstance(value, Mapping):
            return False
        return all(
            key in value and subdict_match(value[key], sub)
            for key, sub in match.items()
        )

    return bool(match == value)


# ----------------------------
# Section: Logging & Debugging
# ----------------------------


def exception_summary(exc: BaseException) -> str:
    """
    Return a summary string of an arbitrary exception.

    It will be of the form "ExceptionType: Error Message" if the error
    string is non-empty, and just "ExceptionType" otherwise.
    """
    name = type(exc).__qualname__
    smod = type(exc).__module__
    if smod not in ("__main__", "builtins"):
        name = smod + '.' + name

    error = str(exc)
    if error:
        return f"{name}: {error}"
    return name


def pretty_traceback(prefix: str = "  | ") -> str:
    """
    Formats the current traceback, indented to provide visual distinction.

    :param prefix: The prefix to append to each line of the traceback.
    :return: A string, formatted something like the following::

      | Traceback (most recent call last):
      |   File "foobar.py", line 42, in arbitrary_example
      |     foo.baz()
      | ArbitraryError: [Errno 42] Something bad happened!
    """
    output = "".join(traceback.format_exception(*sys.exc_info()))

    exc_lines = [prefix + line for line in output.split('\n')]

    # The last line is always empty, omit it
    return "\n".join(exc_lines[:-1])
