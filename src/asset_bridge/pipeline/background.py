"""Detached background imports.

A request handler acknowledges immediately and leaves the import running.
Failures of a detached run are logged here and never reach the caller.
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

from asset_bridge.pipeline.orchestrator import ImportOrchestrator
from asset_bridge.utils.logging import get_logger

logger = get_logger(__name__)


class BackgroundImports:
    """Keeps strong references to detached import tasks until they finish."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def start(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        """Schedule ``coro`` without awaiting it."""
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.info("background_import_started", task=task.get_name())
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("background_import_cancelled", task=task.get_name())
            return

        error = task.exception()
        if error is not None:
            logger.error(
                "background_import_failed",
                task=task.get_name(),
                error_type=type(error).__name__,
                error=str(error),
            )
        else:
            logger.info("background_import_finished", task=task.get_name())

    def submit_import(
        self,
        target_url: str,
        api_key: str,
        source_type: str,
        asset_id: str | None = None,
        dry_run: bool = False,
        **orchestrator_options: Any,
    ) -> dict[str, Any]:
        """Start an import in the background and return an acknowledgment."""
        task = self.start(
            _execute_import(target_url, api_key, source_type, asset_id, dry_run, orchestrator_options),
            name=f"import-{source_type}" + (f"-{asset_id}" if asset_id else ""),
        )
        return {
            "status": "accepted",
            "source_type": source_type,
            "asset_id": asset_id,
            "task": task.get_name(),
            "message": "Import started. Check the integration run log for results.",
        }

    async def wait(self) -> None:
        """Wait until every detached import has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


async def _execute_import(
    target_url: str,
    api_key: str,
    source_type: str,
    asset_id: str | None,
    dry_run: bool,
    orchestrator_options: dict[str, Any],
) -> None:
    async with ImportOrchestrator(**orchestrator_options) as orchestrator:
        await orchestrator.initialize(target_url, api_key, source_type)
        if asset_id:
            await orchestrator.import_single_asset(asset_id, dry_run=dry_run)
        else:
            await orchestrator.import_all(dry_run=dry_run)
