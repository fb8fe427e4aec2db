"""The shared rate-limit gate requests are admitted through.

One gate should be created per authenticated session (see
`guildkit.client.GuildClient`) and shared by every guild facade using it.
"""

from __future__ import annotations

__all__: typing.Final[typing.Sequence[str]] = ["BackOff", "BucketKey", "GateMode", "RateLimitGate"]

import asyncio
import enum
import logging
import time
import types
import typing

from hikari.impl import rate_limits as _rate_limits

from . import errors

_LOGGER: typing.Final[logging.Logger] = logging.getLogger("hikari.guildkit.rate_limits")
_GateT = typing.TypeVar("_GateT", bound="RateLimitGate")

BucketKey = typing.Tuple[str, typing.Optional[str]]
"""Type hint of a gate key: the endpoint bucket and guild ID (where applicable)."""

SleepT = typing.Callable[[float], typing.Awaitable[typing.Any]]
"""Type hint of the coroutine function used to wait."""

DEFAULT_CAPACITY: typing.Final[int] = 5
DEFAULT_WINDOW: typing.Final[float] = 5.0
DEFAULT_MAX_WAIT: typing.Final[float] = 60.0
DEFAULT_MAX_RETRIES: typing.Final[int] = 3


class GateMode(str, enum.Enum):
    """How the gate treats a call which arrives at an exhausted bucket."""

    WAIT = "wait"
    """Block until the bucket refills, up to the gate's max wait."""

    FAIL = "fail"
    """Raise `guildkit.errors.RateLimited` straight away."""


class BackOff:
    """Async iterator which waits between retries.

    The first iteration never waits; later ones wait for either the time set
    with `BackOff.backoff` or the next exponential back-off value.
    """

    __slots__: typing.Sequence[str] = ("_backoff", "_next_backoff", "_sleep", "_started")

    def __init__(
        self,
        base: float = 2.0,
        maximum: float = 64.0,
        jitter_multiplier: float = 1.0,
        initial_increment: int = 0,
        *,
        sleep: SleepT = asyncio.sleep,
    ) -> None:
        self._backoff = _rate_limits.ExponentialBackOff(
            base=base, maximum=maximum, jitter_multiplier=jitter_multiplier, initial_increment=initial_increment
        )
        self._next_backoff: typing.Optional[float] = None
        self._sleep = sleep
        self._started = False

    def __aiter__(self) -> BackOff:
        return self

    async def __anext__(self) -> None:
        if not self._started:
            self._started = True
            return

        backoff: float
        if self._next_backoff is None:
            backoff = next(self._backoff)
        else:
            backoff = self._next_backoff
            self._next_backoff = None

        await self._sleep(backoff)

    def backoff(self, backoff_: typing.Optional[float], /) -> None:
        """Set the time the next iteration should wait for.

        `builtins.None` falls back to exponential back-off.
        """
        self._next_backoff = backoff_


class _Bucket:
    __slots__: typing.Sequence[str] = ("capacity", "lock", "remaining", "reset_at", "window")

    def __init__(self, capacity: int, window: float) -> None:
        self.capacity = capacity
        self.lock = asyncio.Lock()
        self.remaining = capacity
        self.reset_at: typing.Optional[float] = None
        self.window = window

    def refill(self, now: float, /) -> None:
        if self.reset_at is not None and now >= self.reset_at:
            self.remaining = self.capacity
            self.reset_at = None

    def try_take(self, now: float, /) -> typing.Optional[float]:
        """Take a token, returning how long to wait if the bucket's empty."""
        self.refill(now)
        if self.remaining > 0:
            if self.reset_at is None:
                self.reset_at = now + self.window

            self.remaining -= 1
            return None

        assert self.reset_at is not None
        return max(self.reset_at - now, 0.0)


class RateLimitGate:
    """Process-wide token-bucket rate limiter keyed by endpoint bucket and guild.

    Parameters
    ----------
    capacity : int
        How many calls a bucket admits per window until the server says otherwise.
    window : float
        Length of a bucket's window in seconds until the server says otherwise.

    Other Parameters
    ----------------
    mode : GateMode
        The default behaviour for calls which hit an exhausted bucket.
    max_wait : float
        The most time (in seconds) a single call may spend waiting in `GateMode.WAIT`.
    max_retries : int
        How many times a call may be retried after the server responds with a
        rate limit in `GateMode.WAIT`.
    clock : typing.Callable[[], float]
        Monotonic clock used to track windows.
    sleep : typing.Callable[[float], typing.Awaitable[typing.Any]]
        Coroutine function used to wait.
    """

    __slots__: typing.Sequence[str] = (
        "_buckets",
        "_capacity",
        "_clock",
        "_global_reset_at",
        "_is_alive",
        "_max_retries",
        "_max_wait",
        "_mode",
        "_sleep",
        "_window",
    )

    def __init__(
        self,
        *,
        capacity: int = DEFAULT_CAPACITY,
        window: float = DEFAULT_WINDOW,
        mode: GateMode = GateMode.WAIT,
        max_wait: float = DEFAULT_MAX_WAIT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: typing.Callable[[], float] = time.monotonic,
        sleep: SleepT = asyncio.sleep,
    ) -> None:
        if capacity <= 0:
            raise ValueError("Capacity must be a positive integer")

        if window <= 0:
            raise ValueError("Window must be a positive number of seconds")

        self._buckets: typing.Dict[BucketKey, _Bucket] = {}
        self._capacity = capacity
        self._clock = clock
        self._global_reset_at: typing.Optional[float] = None
        self._is_alive = False
        self._max_retries = max_retries
        self._max_wait = max_wait
        self._mode = GateMode(mode)
        self._sleep = sleep
        self._window = window

    async def __aenter__(self: _GateT) -> _GateT:
        self.open()
        return self

    async def __aexit__(
        self,
        exc_type: typing.Optional[typing.Type[BaseException]],
        exc_val: typing.Optional[BaseException],
        exc_tb: typing.Optional[types.TracebackType],
    ) -> None:
        self.close()

    @property
    def is_alive(self) -> bool:
        return self._is_alive

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def mode(self) -> GateMode:
        return self._mode

    @property
    def sleep(self) -> SleepT:
        return self._sleep

    def open(self) -> None:
        self._is_alive = True

    def close(self) -> None:
        """Close the gate, dropping all bucket state."""
        self._is_alive = False
        self._buckets = {}
        self._global_reset_at = None

    def _get_bucket(self, key: BucketKey, /) -> _Bucket:
        try:
            return self._buckets[key]

        except KeyError:
            bucket = self._buckets[key] = _Bucket(self._capacity, self._window)
            return bucket

    def _global_wait(self, now: float, /) -> typing.Optional[float]:
        if self._global_reset_at is None:
            return None

        if now >= self._global_reset_at:
            self._global_reset_at = None
            return None

        return self._global_reset_at - now

    async def acquire(
        self, bucket: str, guild_id: typing.Optional[str] = None, /, *, mode: typing.Optional[GateMode] = None
    ) -> None:
        """Wait for admission to a bucket.

        Parameters
        ----------
        bucket : str
            The endpoint bucket being called.
        guild_id : typing.Optional[str]
            ID of the guild the call targets, if applicable.

        Other Parameters
        ----------------
        mode : typing.Optional[GateMode]
            Override of the gate's default mode for this call.

        Raises
        ------
        guildkit.errors.RateLimited
            If the bucket is exhausted in `GateMode.FAIL` or if admission would
            take longer than the gate's max wait in `GateMode.WAIT`.
        guildkit.errors.ClosedClient
            If the gate isn't open.
        """
        if not self._is_alive:
            raise errors.ClosedClient("Cannot use an inactive rate-limit gate")

        mode = self._mode if mode is None else GateMode(mode)
        state = self._get_bucket((bucket, guild_id))
        deadline = self._clock() + self._max_wait
        while True:
            # The lock only covers the check and take; it's never held while sleeping.
            async with state.lock:
                now = self._clock()
                retry_after = self._global_wait(now)
                if retry_after is None:
                    retry_after = state.try_take(now)

            if retry_after is None:
                return

            if mode is GateMode.FAIL:
                raise errors.RateLimited(f"Bucket {bucket!r} is exhausted", retry_after=retry_after)

            if now + retry_after > deadline:
                raise errors.RateLimited(
                    f"Bucket {bucket!r} would need more than {self._max_wait}s of waiting", retry_after=retry_after
                )

            _LOGGER.debug("bucket %r for guild %s is exhausted, waiting %.2fs", bucket, guild_id, retry_after)
            await self._sleep(retry_after)

            if not self._is_alive:
                raise errors.ClosedClient("Rate-limit gate was closed while waiting")

    def update(
        self,
        bucket: str,
        guild_id: typing.Optional[str] = None,
        /,
        *,
        limit: int,
        remaining: int,
        reset_after: float,
    ) -> None:
        """Adopt the state the server reported for a bucket.

        `reset_after` is only the time left in the current window; later
        windows keep the bucket's known length.
        """
        state = self._get_bucket((bucket, guild_id))
        state.capacity = max(limit, 1)
        state.remaining = max(min(remaining, state.capacity), 0)
        state.reset_at = self._clock() + max(reset_after, 0.0)

    def throttle(
        self, bucket: str, guild_id: typing.Optional[str] = None, /, *, retry_after: float, is_global: bool = False
    ) -> None:
        """Record that the server rate limited a call.

        A global throttle blocks every bucket until it expires.
        """
        reset_at = self._clock() + retry_after
        if is_global:
            _LOGGER.warning("globally rate limited for %.2fs", retry_after)
            if self._global_reset_at is None or reset_at > self._global_reset_at:
                self._global_reset_at = reset_at

            return

        _LOGGER.warning("bucket %r for guild %s was rate limited for %.2fs", bucket, guild_id, retry_after)
        state = self._get_bucket((bucket, guild_id))
        state.remaining = 0
        state.reset_at = reset_at
