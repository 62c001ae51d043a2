from dataclasses import dataclass
from typing import Dict, List, Callable, Optional, Set
import asyncio
import inspect
import logging
logger = logging.getLogger(__name__)


@dataclass
class TransferProgress:
    """Progress information for a single in-flight transfer."""
    filename: str
    relative_path: str
    batch_number: int
    fraction: float = 0.0

    @property
    def percent(self) -> float:
        return self.fraction * 100


class EventEmitter:
    """Simple event emitter for session events."""

    def __init__(self):
        self._listeners: Dict[str, List[Callable]] = {}
        self._lock: Optional[asyncio.Lock] = None
        self._pending: Set[asyncio.Task] = set()

    def on(self, event_name: str, callback: Callable):
        """Subscribe to an event."""
        if event_name not in self._listeners:
            self._listeners[event_name] = []
        if callback not in self._listeners[event_name]:
            self._listeners[event_name].append(callback)

    def off(self, event_name: str, callback: Callable):
        """Unsubscribe from an event."""
        if event_name in self._listeners:
            if callback in self._listeners[event_name]:
                self._listeners[event_name].remove(callback)

    def has_listeners(self, event_name: str) -> bool:
        return bool(self._listeners.get(event_name))

    async def emit(self, event_name: str, *args, **kwargs):
        """Emit an event to all listeners. Listener errors are logged, never raised."""
        if event_name not in self._listeners:
            return

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            for callback in self._listeners[event_name][:]:  # Copy list to avoid modification during iteration
                try:
                    if inspect.iscoroutinefunction(callback):
                        await callback(*args, **kwargs)
                    else:
                        callback(*args, **kwargs)
                except Exception as e:
                    logger.error(f"Error in event listener for {event_name}: {e}")

    def emit_nowait(self, event_name: str, *args, **kwargs) -> Optional[asyncio.Task]:
        """Schedule an emit from synchronous code running inside the event loop."""
        if not self.has_listeners(event_name):
            return None
        loop = asyncio.get_running_loop()
        task = loop.create_task(self.emit(event_name, *args, **kwargs))
        # The loop only keeps weak references to tasks
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    @property
    def pending(self) -> int:
        """Scheduled emits that have not finished yet."""
        return len(self._pending)
