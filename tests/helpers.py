"""
Test doubles shared across the suite.
"""

import asyncio
from collections.abc import Callable
from typing import Any

from procqueue.types.events import JobEvent


class EventRecorder:
    """Notification sink that keeps every event it receives."""

    def __init__(self):
        self.events: list[JobEvent] = []

    async def publish(self, event: JobEvent) -> None:
        self.events.append(event)

    def types_for(self, job_id: str) -> list[str]:
        return [e.event_type for e in self.events if e.job_id == job_id]


class GatedRoutine:
    """
    Processing routine that blocks until released.

    Jobs are identified by ``options["name"]``. With ``options["auto"]``
    the job returns without waiting; with ``options["fail"]`` it raises
    that message.
    """

    def __init__(self):
        self.started: list[str] = []
        self.running = 0
        self.max_running = 0
        self._gates: dict[str, asyncio.Event] = {}

    def _gate(self, name: str) -> asyncio.Event:
        return self._gates.setdefault(name, asyncio.Event())

    def release(self, *names: str) -> None:
        for name in names:
            self._gate(name).set()

    async def __call__(self, target_path: str, options: dict[str, Any]) -> dict[str, Any]:
        name = options["name"]
        self.started.append(name)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if options.get("auto"):
                await asyncio.sleep(0.001)
            else:
                await self._gate(name).wait()
            if options.get("fail"):
                raise RuntimeError(options["fail"])
            return {"name": name, "target_path": target_path}
        finally:
            self.running -= 1


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll until predicate() is true, failing the test on timeout."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


def job_spec(name: str, priority: str = "normal", **options: Any) -> dict[str, Any]:
    """Build a spec for the gated test routine."""
    return {
        "category": "image",
        "target_path": f"/tmp/{name}.png",
        "operation": "gated",
        "options": {"name": name, **options},
        "priority": priority,
    }
