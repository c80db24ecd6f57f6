#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Type hints used internally by this package. Intended for "from .internal_types import *".
"""

from __future__ import annotations

from typing import (
    Dict, List, Optional, Union, Any, Type, TypeVar, Tuple, overload,
    Callable, Iterable, Iterator, Generator, cast, TYPE_CHECKING,
    Mapping, MutableMapping, Awaitable, Set, Sequence,
    AsyncIterator, AsyncIterable, AsyncContextManager,
  )

from typing_extensions import Self

from types import TracebackType

HostAndPort = Tuple[str, int]
"""A (host, port) tuple as used by the socket module for AF_INET addresses."""

JsonableTypes = (str, int, float, bool, dict, list)
# A tuple of types to use for isinstance checking of JSON-serializable types. Excludes None. Useful for isinstance.

Jsonable = Union[str, int, float, bool, None, Dict[str, Any], List[Any]]
"""A Type hint for a simple JSON-serializable value; i.e., str, int, float, bool, None, Dict[str, Jsonable], List[Jsonable]"""

JsonableDict = Dict[str, Jsonable]
"""A type hint for a simple JSON-serializable dict; i.e., Dict[str, Jsonable]"""
