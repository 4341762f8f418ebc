"""
Integration Hooks Manager

Notifies external systems when an aggregation run finishes, fails or
prunes a snapshot.
"""

import json
import logging
import queue
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import requests


class HookEvent(Enum):
    """Hook event types."""
    AGGREGATION_COMPLETED = "aggregation.completed"
    AGGREGATION_FAILED = "aggregation.failed"
    SNAPSHOT_PRUNED = "snapshot.pruned"


@dataclass
class HookPayload:
    """Hook event payload."""
    event: HookEvent
    timestamp: datetime
    data: Dict[str, Any]
    metadata: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'event': self.event.value,
            'timestamp': self.timestamp.isoformat(),
            'data': self.data,
            'metadata': self.metadata
        }


@dataclass
class HookResult:
    """Result of one hook execution."""
    success: bool
    hook_name: str
    event: HookEvent
    execution_time: float
    error: Optional[str] = None
    response: Optional[Dict[str, Any]] = None


class IntegrationHook:
    """Base class for integration hooks."""

    def __init__(self, name: str, events: Optional[List[HookEvent]] = None):
        """
        Initialize hook.

        Args:
            name: Hook name
            events: Events to handle (None = all events)
        """
        self.name = name
        self.events = events
        self.logger = logging.getLogger(f"{__name__}.{name}")

    def should_process(self, event: HookEvent) -> bool:
        if self.events is None:
            return True
        return event in self.events

    def process(self, payload: HookPayload) -> HookResult:
        raise NotImplementedError

    def _result(self, payload: HookPayload, started: float, **kwargs) -> HookResult:
        return HookResult(
            hook_name=self.name,
            event=payload.event,
            execution_time=time.monotonic() - started,
            **kwargs
        )


class WebhookHook(IntegrationHook):
    """HTTP webhook integration."""

    def __init__(
        self,
        name: str,
        url: str,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        timeout: int = 30,
        retry_count: int = 3,
        events: Optional[List[HookEvent]] = None
    ):
        """
        Initialize webhook hook.

        Args:
            name: Hook name
            url: Webhook URL
            method: HTTP method (POST or PUT)
            headers: HTTP headers
            timeout: Request timeout in seconds
            retry_count: Attempts before giving up
            events: Events to handle (None = all events)
        """
        super().__init__(name, events)
        self.url = url
        self.method = method.upper()
        self.headers = headers or {'Content-Type': 'application/json'}
        self.timeout = timeout
        self.retry_count = max(1, retry_count)

        if self.method not in ('POST', 'PUT'):
            raise ValueError(f"Unsupported HTTP method: {self.method}")

    def process(self, payload: HookPayload) -> HookResult:
        started = time.monotonic()
        body = json.dumps(payload.to_dict())
        send = requests.post if self.method == 'POST' else requests.put

        last_error = None
        for attempt in range(self.retry_count):
            try:
                response = send(self.url, data=body, headers=self.headers, timeout=self.timeout)
                response.raise_for_status()
                return self._result(
                    payload, started,
                    success=True,
                    response={
                        'status_code': response.status_code,
                        'body': response.text[:500]
                    }
                )
            except requests.RequestException as e:
                last_error = str(e)
                if attempt < self.retry_count - 1:
                    self.logger.warning(f"Webhook attempt {attempt + 1} failed: {e}")

        return self._result(
            payload, started,
            success=False,
            error=f"Failed after {self.retry_count} attempts: {last_error}"
        )


class CallbackHook(IntegrationHook):
    """Python callback function hook."""

    def __init__(
        self,
        name: str,
        callback: Callable[[HookPayload], Any],
        events: Optional[List[HookEvent]] = None
    ):
        super().__init__(name, events)
        self.callback = callback

    def process(self, payload: HookPayload) -> HookResult:
        started = time.monotonic()
        try:
            outcome = self.callback(payload)
        except Exception as e:
            return self._result(payload, started, success=False, error=str(e))
        return self._result(payload, started, success=True, response={'result': str(outcome)})


class FileLogHook(IntegrationHook):
    """Appends events to a local file, one line per event."""

    def __init__(
        self,
        name: str,
        log_file: Path,
        format: str = "json",
        events: Optional[List[HookEvent]] = None
    ):
        """
        Initialize file log hook.

        Args:
            name: Hook name
            log_file: Log file path
            format: Line format (json or text)
            events: Events to handle (None = all events)
        """
        super().__init__(name, events)
        self.log_file = Path(log_file)
        self.format = format
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def process(self, payload: HookPayload) -> HookResult:
        started = time.monotonic()
        if self.format == 'json':
            line = json.dumps(payload.to_dict())
        else:
            line = f"[{payload.timestamp.isoformat()}] {payload.event.value}: {json.dumps(payload.data)}"

        try:
            with open(self.log_file, 'a') as f:
                f.write(line + '\n')
        except OSError as e:
            return self._result(payload, started, success=False, error=str(e))
        return self._result(payload, started, success=True)


class IntegrationHookManager:
    """
    Dispatches aggregation events to registered hooks.

    With async_execution a single daemon worker drains the event queue,
    so a slow webhook never holds up an aggregation run.
    """

    def __init__(self, async_execution: bool = True, max_queue_size: int = 1000):
        self.hooks: Dict[str, IntegrationHook] = {}
        self.async_execution = async_execution
        self.logger = logging.getLogger(__name__)
        self._lock = threading.Lock()
        self.stats = self._empty_stats()

        if async_execution:
            self.event_queue = queue.Queue(maxsize=max_queue_size)
            self.worker_thread = threading.Thread(
                target=self._process_queue, name="a11y-hooks", daemon=True
            )
            self.worker_thread.start()

    @staticmethod
    def _empty_stats() -> Dict[str, Any]:
        return {
            'events_fired': 0,
            'hooks_executed': 0,
            'hooks_failed': 0,
            'total_execution_time': 0.0
        }

    def register_hook(self, hook: IntegrationHook):
        self.hooks[hook.name] = hook
        self.logger.info(f"Registered hook: {hook.name}")

    def unregister_hook(self, name: str) -> bool:
        if name in self.hooks:
            del self.hooks[name]
            self.logger.info(f"Unregistered hook: {name}")
            return True
        return False

    def fire_event(
        self,
        event: HookEvent,
        data: Dict[str, Any],
        metadata: Optional[Dict[str, str]] = None
    ) -> List[HookResult]:
        """
        Fire an event to all registered hooks.

        Returns:
            HookResults of the executed hooks (empty when async)
        """
        payload = HookPayload(
            event=event,
            timestamp=datetime.now(timezone.utc),
            data=data,
            metadata=metadata
        )

        with self._lock:
            self.stats['events_fired'] += 1

        if self.async_execution:
            try:
                self.event_queue.put_nowait(payload)
            except queue.Full:
                self.logger.error(f"Hook queue full, dropping {event.value} event")
            return []
        return self._execute_hooks(payload)

    def wait_until_idle(self):
        """Block until every queued event has been handled."""
        if self.async_execution:
            self.event_queue.join()

    def _execute_hooks(self, payload: HookPayload) -> List[HookResult]:
        results = []

        for hook in list(self.hooks.values()):
            if not hook.should_process(payload.event):
                continue

            try:
                result = hook.process(payload)
            except Exception as e:
                self.logger.error(f"Exception in hook {hook.name}: {e}")
                result = HookResult(
                    success=False,
                    hook_name=hook.name,
                    event=payload.event,
                    execution_time=0.0,
                    error=str(e)
                )
            results.append(result)

            with self._lock:
                self.stats['hooks_executed'] += 1
                self.stats['total_execution_time'] += result.execution_time
                if not result.success:
                    self.stats['hooks_failed'] += 1

            if result.success:
                self.logger.debug(f"Hook {hook.name} executed in {result.execution_time:.3f}s")
            else:
                self.logger.error(f"Hook {hook.name} failed: {result.error}")

        return results

    def _process_queue(self):
        while True:
            payload = self.event_queue.get()
            try:
                self._execute_hooks(payload)
            except Exception as e:
                self.logger.error(f"Error processing event queue: {e}")
            finally:
                self.event_queue.task_done()

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            stats = dict(self.stats)

        executed = stats['hooks_executed']
        return {
            **stats,
            'avg_execution_time': stats['total_execution_time'] / executed if executed else 0.0,
            'registered_hooks': len(self.hooks),
            'async_queue_size': self.event_queue.qsize() if self.async_execution else 0,
            'success_rate': (executed - stats['hooks_failed']) / max(executed, 1) * 100
        }

    def clear_statistics(self):
        with self._lock:
            self.stats = self._empty_stats()

    def list_hooks(self) -> List[Dict[str, str]]:
        return [
            {'name': hook.name, 'type': hook.__class__.__name__}
            for hook in self.hooks.values()
        ]
