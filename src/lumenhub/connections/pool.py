"""Bounded per-hub connection pool.

Acquisition policy:
1. If there are no earlier waiters and an idle connection passes its
   liveness check, hand it out. If it fails, the caller keeps its slot
   and dials a replacement, so later arrivals cannot overtake it.
2. Else if fewer than ``capacity`` connections exist, dial a new one
   within the same acquisition deadline.
3. Else wait in a FIFO queue. A healthy release is handed straight to the
   oldest waiter; an unhealthy release frees a slot the oldest waiter dials.

Invariant: idle + in-use + dialing <= capacity at all times.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator, Awaitable, Callable

from ..events.models import ConnectionState, ConnectionStateChanged
from ..exceptions import (
    DialError,
    InternalError,
    PoolClosedError,
    PoolTimeoutError,
)
from .transport import Transport

if TYPE_CHECKING:
    from ..events.bus import EventBus

logger = logging.getLogger(__name__)

Dialer = Callable[[], Awaitable[Transport]]
HealthCheck = Callable[[Transport], Awaitable[bool]]


class ConnectionPool:
    """Pool of live transports to one hub.

    Example:
        pool = ConnectionPool("hub-1", dialer, capacity=2)

        async with pool.connection(timeout=5.0) as conn:
            await conn.write(b"#OUTPUT,12,1,50.00\\r\\n")

        await pool.close()
    """

    def __init__(
        self,
        name: str,
        dialer: Dialer,
        capacity: int = 1,
        *,
        dial_timeout: float = 3.0,
        acquire_timeout: float = 5.0,
        health_check: HealthCheck | None = None,
        events: "EventBus | None" = None,
    ):
        """Initialize the pool.

        Args:
            name: Pool name used in logs and events (usually the hub id)
            dialer: Coroutine factory that opens a new transport
            capacity: Maximum connections (idle + in use + dialing)
            dial_timeout: Upper bound for a single dial
            acquire_timeout: Default wait for get()
            health_check: Optional liveness check run on idle connections
            events: Optional bus for ConnectionStateChanged events
        """
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.name = name
        self._dialer = dialer
        self._capacity = capacity
        self._dial_timeout = dial_timeout
        self._acquire_timeout = acquire_timeout
        self._health_check = health_check
        self._events = events

        self._idle: deque[Transport] = deque()
        self._in_use: set[Transport] = set()
        self._dialing = 0
        self._waiters: deque[asyncio.Future] = deque()
        self._closing_tasks: set[asyncio.Task] = set()
        self._drained = asyncio.Event()
        self._drained.set()
        self._closed = False

        self.dial_count = 0
        self.discard_count = 0
        self.acquire_count = 0
        self.release_count = 0

    # ==================== Introspection ====================

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def size(self) -> int:
        """Connections that exist or are being dialed."""
        return len(self._idle) + len(self._in_use) + self._dialing

    @property
    def in_use(self) -> int:
        return len(self._in_use)

    @property
    def idle(self) -> int:
        return len(self._idle)

    @property
    def waiting(self) -> int:
        return sum(1 for w in self._waiters if not w.done())

    def stats(self) -> dict[str, int]:
        """Snapshot of pool occupancy."""
        return {
            "capacity": self._capacity,
            "idle": self.idle,
            "in_use": self.in_use,
            "dialing": self._dialing,
            "waiting": self.waiting,
            "dials": self.dial_count,
            "discards": self.discard_count,
            "acquires": self.acquire_count,
            "releases": self.release_count,
        }

    # ==================== Acquisition ====================

    async def get(self, timeout: float | None = None) -> Transport:
        """Acquire a transport.

        Args:
            timeout: Seconds to wait (default: pool acquire_timeout)

        Returns:
            A transport that must be handed back with release()

        Raises:
            PoolTimeoutError: If the wait elapses
            DialError: If a new connection could not be opened
            PoolClosedError: If the pool is closed
        """
        conn = await self._acquire(timeout)
        self.acquire_count += 1
        return conn

    async def _acquire(self, timeout: float | None) -> Transport:
        if self._closed:
            raise PoolClosedError(self.name)

        timeout = self._acquire_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        if not self._has_waiters():
            if self._idle:
                conn = await self._take_idle()
                if conn is not None:
                    return conn
                # The stale connection's slot is reserved for this caller
                return await self._dial_reserved(deadline, timeout)
            if self.size < self._capacity:
                self._dialing += 1
                return await self._dial_reserved(deadline, timeout)

        waiter = loop.create_future()
        self._waiters.append(waiter)
        logger.debug(f"Pool '{self.name}' full, waiting ({self.waiting} waiter(s))")

        try:
            result = await asyncio.wait_for(
                asyncio.shield(waiter), max(deadline - loop.time(), 0)
            )
        except asyncio.TimeoutError:
            if not self._settled(waiter):
                waiter.cancel()
                self._forget_waiter(waiter)
                raise PoolTimeoutError(self.name, timeout)
            # Handed off in the same tick the wait expired
            result = waiter.result()
        except asyncio.CancelledError:
            if self._settled(waiter):
                self._give_back(waiter.result())
            else:
                waiter.cancel()
                self._forget_waiter(waiter)
            raise

        if result is None:
            # A slot was freed and reserved for us
            return await self._dial_reserved(deadline, timeout)
        return result

    def release(self, conn: Transport, healthy: bool = True) -> None:
        """Return a transport to the pool.

        Args:
            conn: Transport previously returned by get()
            healthy: False to close it instead of keeping it

        Raises:
            InternalError: If conn was not acquired from this pool
        """
        if conn not in self._in_use:
            if conn in self._idle or self._closed:
                # Repeated release, or a connection force-closed by close()
                logger.debug(f"Ignoring release of {conn!r} on pool '{self.name}'")
                return
            raise InternalError(
                f"Connection {conn!r} was not acquired from pool '{self.name}'"
            )
        self.release_count += 1

        if healthy and not conn.closed and not self._closed:
            waiter = self._pop_waiter()
            if waiter is not None:
                # Ownership moves to the waiter; the connection stays in use
                waiter.set_result(conn)
                logger.debug(f"Pool '{self.name}' handed connection to waiter")
                return
            self._in_use.discard(conn)
            self._idle.append(conn)
        else:
            self._in_use.discard(conn)
            self._discard(conn, "released unhealthy" if not healthy else "released")
            self._slot_freed()

        self._update_drained()

    @asynccontextmanager
    async def connection(self, timeout: float | None = None) -> AsyncIterator[Transport]:
        """Scoped acquisition: the transport is released on every exit path.

        Any exception raised inside the block (including cancellation)
        marks the connection unhealthy so it is discarded.
        """
        conn = await self.get(timeout)
        healthy = True
        try:
            yield conn
        except BaseException:
            healthy = False
            raise
        finally:
            self.release(conn, healthy=healthy and not conn.closed)

    # ==================== Shutdown ====================

    async def close(self, grace: float = 10.0) -> None:
        """Close the pool.

        Refuses new acquisitions, fails waiters, closes idle connections,
        waits up to grace for in-use connections, then force-closes them.
        """
        if self._closed:
            await self._await_closing()
            return
        self._closed = True

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(PoolClosedError(self.name))

        while self._idle:
            await self._idle.popleft().close()

        if self._in_use or self._dialing:
            try:
                await asyncio.wait_for(self._drained.wait(), grace)
            except asyncio.TimeoutError:
                logger.warning(
                    f"Pool '{self.name}' force-closing {len(self._in_use)} "
                    f"connection(s) after {grace}s grace"
                )
                for conn in list(self._in_use):
                    await conn.close()
                self._in_use.clear()
                self._update_drained()

        await self._await_closing()
        self._publish(ConnectionState.CLOSED, "pool closed")
        logger.info(f"Connection pool '{self.name}' closed")

    # ==================== Internals ====================

    @staticmethod
    def _settled(waiter: asyncio.Future) -> bool:
        return waiter.done() and not waiter.cancelled() and waiter.exception() is None

    def _has_waiters(self) -> bool:
        while self._waiters and self._waiters[0].done():
            self._waiters.popleft()
        return bool(self._waiters)

    def _pop_waiter(self) -> asyncio.Future | None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                return waiter
        return None

    def _forget_waiter(self, waiter: asyncio.Future) -> None:
        try:
            self._waiters.remove(waiter)
        except ValueError:
            pass

    def _give_back(self, result: Transport | None) -> None:
        """Undo a hand-off to a waiter that was cancelled."""
        if result is None:
            self._dialing -= 1
            self._slot_freed()
            self._update_drained()
        else:
            self.release(result)

    def _slot_freed(self) -> None:
        """Let the oldest waiter dial into a freed slot."""
        if self._closed or self.size >= self._capacity:
            return
        waiter = self._pop_waiter()
        if waiter is not None:
            self._dialing += 1
            waiter.set_result(None)

    async def _take_idle(self) -> Transport | None:
        """Check the oldest idle connection.

        Returns it if alive. Otherwise it is discarded and its slot moves
        to ``_dialing`` on behalf of the caller, who must dial into it.
        """
        conn = self._idle.popleft()
        # Counted as in use while checked so no one over-dials
        self._in_use.add(conn)
        self._update_drained()
        try:
            alive = not conn.closed and await self._is_alive(conn)
        except BaseException:
            self._in_use.discard(conn)
            self._discard(conn, "liveness check cancelled")
            self._slot_freed()
            self._update_drained()
            raise
        if alive:
            return conn

        self._in_use.discard(conn)
        self._dialing += 1
        logger.warning(f"Pool '{self.name}' dropping idle connection that failed liveness check")
        self._discard(conn, "failed liveness check")
        self._update_drained()
        return None

    async def _is_alive(self, conn: Transport) -> bool:
        if self._health_check is None:
            return True
        try:
            return await self._health_check(conn)
        except Exception as e:
            logger.debug(f"Liveness check on '{self.name}' raised: {e}")
            return False

    async def _dial_reserved(self, deadline: float, timeout: float) -> Transport:
        """Dial into a slot already counted in self._dialing."""
        loop = asyncio.get_running_loop()
        remaining = deadline - loop.time()
        self._update_drained()
        if self._closed:
            self._dialing -= 1
            self._update_drained()
            raise PoolClosedError(self.name)
        if remaining <= 0:
            self._dialing -= 1
            self._slot_freed()
            self._update_drained()
            raise PoolTimeoutError(self.name, timeout)

        try:
            conn = await asyncio.wait_for(
                self._dialer(), min(self._dial_timeout, remaining)
            )
        except asyncio.CancelledError:
            self._dialing -= 1
            self._slot_freed()
            self._update_drained()
            raise
        except Exception as e:
            self._dialing -= 1
            self._slot_freed()
            self._update_drained()
            message = "dial timed out" if isinstance(e, asyncio.TimeoutError) else str(e)
            self._publish(ConnectionState.DIAL_FAILED, message)
            logger.warning(f"Pool '{self.name}' dial failed: {message}")
            if isinstance(e, DialError):
                raise
            raise DialError(f"Failed to connect to '{self.name}': {message}", e)

        self._dialing -= 1
        if self._closed:
            await conn.close()
            self._update_drained()
            raise PoolClosedError(self.name)

        self._in_use.add(conn)
        self.dial_count += 1
        self._publish(ConnectionState.CONNECTED, repr(conn))
        logger.info(f"Pool '{self.name}' opened connection {self.dial_count}: {conn!r}")
        return conn

    def _discard(self, conn: Transport, reason: str) -> None:
        self.discard_count += 1
        self._publish(ConnectionState.DISCARDED, reason)
        logger.debug(f"Pool '{self.name}' discarding {conn!r}: {reason}")
        task = asyncio.get_running_loop().create_task(conn.close())
        self._closing_tasks.add(task)
        task.add_done_callback(self._closing_tasks.discard)

    async def _await_closing(self) -> None:
        if self._closing_tasks:
            await asyncio.gather(*self._closing_tasks, return_exceptions=True)

    def _update_drained(self) -> None:
        if self._in_use or self._dialing:
            self._drained.clear()
        else:
            self._drained.set()

    def _publish(self, state: ConnectionState, message: str) -> None:
        if self._events is not None:
            self._events.publish(
                ConnectionStateChanged(pool=self.name, state=state, message=message)
            )
