"""
Operation dispatcher.

Maps a job's category and operation name to the processing routine that
carries it out. Resolution is synchronous so an unsupported combination is
rejected before any routine runs.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from procqueue.constants import JobCategory
from procqueue.types.job import Job

logger = logging.getLogger(__name__)

# Type alias for processing routines: (target_path, options) -> result
ProcessingRoutine = Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]


class UnsupportedOperationError(ValueError):
    """Raised when no routine is registered for a category/operation pair."""

    def __init__(self, category: str, operation: str):
        super().__init__(f"Unsupported {category} operation: {operation}")
        self.category = category
        self.operation = operation


class OperationDispatcher:
    """
    Registry of processing routines keyed by (category, operation).

    Example:
        dispatcher = OperationDispatcher()

        @dispatcher.route(JobCategory.IMAGE, "resize")
        async def resize(target_path: str, options: dict) -> dict:
            ...
    """

    def __init__(self) -> None:
        self._routines: dict[tuple[JobCategory, str], ProcessingRoutine] = {}

    def register(
        self,
        category: JobCategory,
        operation: str,
        routine: ProcessingRoutine,
    ) -> None:
        """
        Register a routine for a category/operation pair.

        Args:
            category: The job category.
            operation: The operation name.
            routine: Coroutine function taking (target_path, options).
        """
        self._routines[(JobCategory(category), operation)] = routine
        logger.debug(
            "Registered processing routine",
            extra={"category": str(category), "operation": operation},
        )

    def route(
        self,
        category: JobCategory,
        operation: str,
    ) -> Callable[[ProcessingRoutine], ProcessingRoutine]:
        """Decorator form of register()."""
        def decorator(routine: ProcessingRoutine) -> ProcessingRoutine:
            self.register(category, operation, routine)
            return routine
        return decorator

    def resolve(self, category: str, operation: str) -> ProcessingRoutine:
        """
        Look up the routine for a category/operation pair.

        Raises:
            UnsupportedOperationError: If the pair is not registered.
        """
        try:
            key = (JobCategory(category), operation)
        except ValueError:
            raise UnsupportedOperationError(category, operation) from None

        routine = self._routines.get(key)
        if routine is None:
            raise UnsupportedOperationError(key[0].value, operation)
        return routine

    def supports(self, category: str, operation: str) -> bool:
        try:
            self.resolve(category, operation)
        except UnsupportedOperationError:
            return False
        return True

    def supported_operations(self) -> dict[str, list[str]]:
        """List registered operations grouped by category."""
        operations: dict[str, list[str]] = {}
        for category, operation in self._routines:
            operations.setdefault(category.value, []).append(operation)
        return operations

    async def execute(self, job: Job) -> dict[str, Any]:
        """
        Run the routine for a job.

        Args:
            job: The job being executed.

        Returns:
            The routine's result.

        Raises:
            UnsupportedOperationError: Before any routine runs, if the
                job's category/operation pair is not registered.
        """
        routine = self.resolve(job.category, job.operation)
        return await routine(job.target_path, job.options)
