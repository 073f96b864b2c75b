"""
Request coalescing for interactive and concurrent lookups.

Two independent mechanisms:

- Debounce: for one operation name, only the last call inside the quiet
  window runs. Superseded callers resolve with the winner's result (or
  exception); being debounced away is not an error.
- In-flight de-duplication: while a call for key K is outstanding, later
  callers for K attach to the same pending task instead of issuing another
  upstream call.

Waiters await a shielded task or future, so a caller that abandons its wait
(cancellation) never affects the other waiters or the shared call itself.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Set, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class _KeyState:
    """Per-key serialization primitive; dropped once nobody uses it."""
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass
class _DebounceSlot:
    future: asyncio.Future
    factory: Optional[Callable[[], Awaitable[Any]]] = None
    timer: Optional[asyncio.TimerHandle] = None
    calls: int = 0


class RequestCoalescer:
    """
    Suppresses redundant calls for the same logical key.

    Locking is per key: work on one key never waits on another key's
    in-flight call.
    """

    def __init__(self, debounce_window_seconds: float = 0.3):
        if debounce_window_seconds < 0:
            raise ValueError("debounce_window_seconds must not be negative")
        self.debounce_window_seconds = debounce_window_seconds
        self._in_flight: Dict[str, asyncio.Task] = {}
        self._key_states: Dict[str, _KeyState] = {}
        self._debounces: Dict[str, _DebounceSlot] = {}
        self._firing: Set[asyncio.Task] = set()
        self._joined = 0
        self._superseded = 0
        self.logger = logging.getLogger(__name__)

    async def run(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        recheck: Optional[Callable[[], Optional[T]]] = None,
    ) -> T:
        """
        Run ``factory`` for ``key`` unless a call for ``key`` is already in flight.

        Args:
            key: Logical key, usually the cache key
            factory: Zero-argument callable returning the awaitable to run
            recheck: Optional cache probe, consulted under the key lock so a
                caller arriving just after a fetch completed is served from
                cache instead of starting a new fetch

        Returns:
            The shared result of the single underlying call
        """
        state = self._key_states.get(key)
        if state is None:
            state = self._key_states[key] = _KeyState()
        state.users += 1
        try:
            async with state.lock:
                if recheck is not None:
                    cached = recheck()
                    if cached is not None:
                        return cached

                task = self._in_flight.get(key)
                if task is None:
                    task = asyncio.ensure_future(factory())
                    self._in_flight[key] = task
                    task.add_done_callback(lambda t, k=key: self._release(k, t))
                    self.logger.debug(f"Started in-flight call for key: {key}")
                else:
                    self._joined += 1
                    self.logger.debug(f"Joined in-flight call for key: {key}")
        finally:
            state.users -= 1
            self._maybe_drop_state(key)

        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled():
            # Mark the exception retrieved even if every waiter went away.
            task.exception()
        self._maybe_drop_state(key)

    def _maybe_drop_state(self, key: str) -> None:
        state = self._key_states.get(key)
        if state is not None and state.users == 0 and key not in self._in_flight:
            del self._key_states[key]

    async def debounce(
        self,
        name: str,
        factory: Callable[[], Awaitable[T]],
        window: Optional[float] = None,
    ) -> T:
        """
        Debounce calls for operation ``name``.

        Each call restarts the quiet window and replaces the pending factory.
        When the window elapses with no further call, the latest factory runs
        once and every caller of the burst receives its outcome.
        """
        window = self.debounce_window_seconds if window is None else window
        loop = asyncio.get_running_loop()

        slot = self._debounces.get(name)
        if slot is None:
            slot = _DebounceSlot(future=loop.create_future())
            slot.future.add_done_callback(_consume_outcome)
            self._debounces[name] = slot
        elif slot.timer is not None:
            slot.timer.cancel()
            self._superseded += 1

        slot.factory = factory
        slot.calls += 1
        slot.timer = loop.call_later(window, self._fire, name, slot)
        return await asyncio.shield(slot.future)

    def _fire(self, name: str, slot: _DebounceSlot) -> None:
        if self._debounces.get(name) is slot:
            del self._debounces[name]
        self.logger.debug(f"Debounce window elapsed for {name} after {slot.calls} call(s)")
        task = asyncio.ensure_future(self._settle(slot))
        self._firing.add(task)
        task.add_done_callback(self._firing.discard)

    async def _settle(self, slot: _DebounceSlot) -> None:
        try:
            result = await slot.factory()
        except asyncio.CancelledError:
            if not slot.future.done():
                slot.future.cancel()
            raise
        except Exception as e:
            if not slot.future.done():
                slot.future.set_exception(e)
        else:
            if not slot.future.done():
                slot.future.set_result(result)

    def cancel(self, name: str) -> bool:
        """Drop a pending debounce burst; its waiters receive CancelledError."""
        slot = self._debounces.pop(name, None)
        if slot is None:
            return False
        if slot.timer is not None:
            slot.timer.cancel()
        slot.future.cancel()
        self.logger.debug(f"Cancelled pending debounce for {name}")
        return True

    def in_flight_count(self) -> int:
        return len(self._in_flight)

    def pending_debounce_count(self) -> int:
        return len(self._debounces)

    def stats(self) -> Dict[str, int]:
        return {
            "in_flight": len(self._in_flight),
            "pending_debounces": len(self._debounces),
            "joined_calls": self._joined,
            "superseded_calls": self._superseded,
        }

    async def shutdown(self) -> None:
        """Cancel every pending debounce and outstanding call."""
        self.logger.info("Shutting down request coalescer")
        for name in list(self._debounces):
            self.cancel(name)

        tasks = list(self._in_flight.values()) + list(self._firing)
        for task in tasks:
            if not task.done():
                task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._in_flight.clear()
        self._key_states.clear()
        self.logger.info("Request coalescer shutdown complete")


def _consume_outcome(future: asyncio.Future) -> None:
    if not future.cancelled():
        future.exception()
