# -*- coding: utf-8 -*-
# cython: language_level=3
# BSD 3-Clause License
#
# Copyright (c) 2020-2022, Faster Speeding
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice, this
#   list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of the copyright holder nor the names of its
#   contributors may be used to endorse or promote products derived from
#   this software without specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE
# DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE
# FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL
# DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR
# SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY,
# OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE
# OF THIS SOFTWARE, EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
from __future__ import annotations

__all__: typing.Sequence[str] = ["RawListenerProto", "as_raw_listener", "find_raw_listeners"]

import typing

_T = typing.TypeVar("_T")
_PayloadT = typing.Mapping[str, typing.Any]
_CallbackT = typing.Callable[["_T", _PayloadT], None]


@typing.runtime_checkable
class RawListenerProto(typing.Protocol):
    """Protocol of a raw event listener method."""

    def __call__(self, payload: _PayloadT, /) -> None:
        """Handle the raw event's payload."""
        raise NotImplementedError

    @property
    def __guildkit_event_names__(self) -> typing.Sequence[str]:
        """Sequence of the raw event names this is listening for."""
        raise NotImplementedError


def as_raw_listener(
    event_name: str, /, *event_names: str
) -> typing.Callable[[_CallbackT[_T]], _CallbackT[_T]]:
    """Mark a method as a raw event listener.

    Parameters
    ----------
    event_name : str
        Name of the raw event this is listening for.
    *event_names : str
        Names of other raw events this is listening for.
    """
    names = (event_name.upper(), *(name.upper() for name in event_names))

    def decorator(listener: _CallbackT[_T], /) -> _CallbackT[_T]:
        listener.__guildkit_event_names__ = names  # type: ignore[attr-defined]
        assert isinstance(listener, RawListenerProto), "Incorrect attributes set for raw listener"
        return listener

    return decorator


def find_raw_listeners(obj: typing.Any, /) -> typing.Dict[str, typing.List[RawListenerProto]]:
    """Find the raw event listener methods on an object.

    This only looks at the object's class so properties are never evaluated.

    Returns
    -------
    typing.Dict[str, typing.List[RawListenerProto]]
        Dictionary of upper-case event names to the bound listener methods.
    """
    raw_listeners: typing.Dict[str, typing.List[RawListenerProto]] = {}
    seen: typing.Set[str] = set()
    for cls in type(obj).mro():
        for name, member in vars(cls).items():
            if name in seen or not isinstance(member, RawListenerProto):
                continue

            seen.add(name)
            bound = getattr(obj, name)
            for event_name in member.__guildkit_event_names__:
                try:
                    raw_listeners[event_name].append(bound)

                except KeyError:
                    raw_listeners[event_name] = [bound]

    return raw_listeners
