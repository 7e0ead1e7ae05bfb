"""
Synchronous in-process publish/subscribe.

Publishing is best-effort: it is only called after the writer has committed,
every handler runs on a worker thread with a time limit, and handler failures
or timeouts are logged and reported back but never raised to the publisher.

A handler may return follow-up events, or call ``publish`` itself. Either way
the follow-ups are not dispatched on the worker that produced them; the
top-level publisher dispatches them once the current round is done, so a
worker never waits on the pool it runs in.
"""
import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from restoledger.core.config import get_settings
from restoledger.core.timeutils import utcnow
from restoledger.events.types import DomainEvent

logger = logging.getLogger(__name__)

Handler = Callable[[DomainEvent], Optional[Iterable[DomainEvent]]]

# set while a handler runs on a worker thread
_worker = threading.local()


@dataclass
class HandlerResult:
    """Outcome of one handler for one published event."""
    handler: str
    ok: bool
    error: Optional[str] = None
    timed_out: bool = False
    event_type: Optional[str] = None


def _handler_name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


class EventBus:
    """
    Registry of handlers keyed by event type.

    ``subscribe`` returns a callable that removes the subscription again.
    The last ``history_size`` published events are kept for inspection.
    """

    def __init__(
        self,
        handler_timeout: Optional[float] = None,
        history_size: Optional[int] = None,
        max_workers: int = 4,
    ):
        settings = get_settings()
        self.handler_timeout = (
            handler_timeout if handler_timeout is not None else settings.EVENT_HANDLER_TIMEOUT_SECONDS
        )
        self._handlers: dict[str, list[Handler]] = {}
        self._history: deque = deque(
            maxlen=history_size if history_size is not None else settings.EVENT_HISTORY_SIZE
        )
        self._lock = threading.Lock()
        self._max_workers = max_workers
        self._executor: Optional[ThreadPoolExecutor] = None

    def subscribe(self, event_type: str, handler: Handler) -> Callable[[], None]:
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed {_handler_name(handler)} to {event_type}")

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._handlers.get(event_type, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def handlers_for(self, event_type: str) -> list[Handler]:
        with self._lock:
            return list(self._handlers.get(event_type, []))

    def publish(self, event: DomainEvent) -> list[HandlerResult]:
        """
        Dispatch an event to every subscriber of its type and wait for them.

        Handlers run concurrently; each round waits at most
        ``handler_timeout`` seconds. A handler still running after that is
        reported as timed out and left to finish in the background. Follow-up
        events are dispatched in later rounds and their results are appended,
        tagged with ``event_type``.

        Called from inside a handler, the event is deferred to the top-level
        publisher and an empty list is returned.
        """
        if getattr(_worker, "bus", None) is self:
            _worker.deferred.append(event)
            logger.debug(f"Deferred {event.type} raised inside a handler")
            return []

        pending = deque([event])
        results: list[HandlerResult] = []
        while pending:
            results.extend(self._dispatch(pending.popleft(), pending))
        return results

    def history(self, event_type: Optional[str] = None, limit: int = 20) -> list[DomainEvent]:
        with self._lock:
            entries = [entry["event"] for entry in self._history]
        if event_type:
            entries = [e for e in entries if e.type == event_type]
        return entries[-limit:] if limit else entries

    def clear(self) -> None:
        """Drop every subscription and the history."""
        with self._lock:
            self._handlers.clear()
            self._history.clear()

    def shutdown(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------

    def _dispatch(self, event: DomainEvent, follow_ups: deque) -> list[HandlerResult]:
        handlers = self._record(event)
        if not handlers:
            return []

        futures = {self._get_executor().submit(self._run, handler, event): handler for handler in handlers}
        done, _ = wait(futures, timeout=self.handler_timeout)

        results = []
        for future, handler in futures.items():
            name = _handler_name(handler)
            if future not in done:
                logger.warning(f"Handler {name} for {event.type} timed out after {self.handler_timeout}s")
                results.append(HandlerResult(handler=name, ok=False, error="timeout", timed_out=True, event_type=event.type))
                future.add_done_callback(self._dispatch_late)
                continue
            exc = future.exception()
            if exc is not None:
                logger.error(f"Handler {name} failed for {event.type}: {exc}", exc_info=exc)
                results.append(HandlerResult(handler=name, ok=False, error=str(exc), event_type=event.type))
            else:
                follow_ups.extend(future.result())
                results.append(HandlerResult(handler=name, ok=True, event_type=event.type))
        return results

    def _dispatch_late(self, future: Future) -> None:
        """Fire-and-forget dispatch of follow-ups from a handler that outlived its round."""
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error(f"Late handler failed: {exc}", exc_info=exc)
            return
        for event in future.result():
            handlers = self._record(event)
            with self._lock:
                executor = self._executor
            if executor is None:
                logger.warning(f"Bus shut down; late {event.type} dropped")
                return
            try:
                for handler in handlers:
                    executor.submit(self._run, handler, event).add_done_callback(self._dispatch_late)
            except RuntimeError:
                logger.warning(f"Bus shut down; late {event.type} dropped")
                return

    def _record(self, event: DomainEvent) -> list[Handler]:
        handlers = self.handlers_for(event.type)
        with self._lock:
            self._history.append({"event": event, "processed_at": utcnow()})
        logger.info(f"Publishing {event.type} for restaurant {event.restaurant_id} to {len(handlers)} handler(s)")
        return handlers

    def _run(self, handler: Handler, event: DomainEvent) -> list[DomainEvent]:
        _worker.bus = self
        _worker.deferred = []
        try:
            returned = handler(event)
            follow_ups = list(_worker.deferred)
            if isinstance(returned, (list, tuple)):
                follow_ups.extend(returned)
            return follow_ups
        finally:
            _worker.bus = None
            _worker.deferred = []

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="event-handler"
                )
            return self._executor


# Process-wide bus used by the API
event_bus = EventBus()
