import asyncio
from typing import Dict, List

from research_hub.config import LOGGER, MONITOR_INITIAL_DELAY_SECONDS, MONITOR_INTERVAL_SECONDS
from research_hub.content_service import ContentService


class MonitorScheduler:
    """
    One repeating collection task per workspace.

    Starting a workspace replaces its previous task; stopping cancels the task
    and waits for it, so no tick can run for that workspace afterwards. Ticks
    of different workspaces run independently of each other.
    """

    def __init__(
        self,
        content_service: ContentService,
        interval: float = MONITOR_INTERVAL_SECONDS,
        initial_delay: float = MONITOR_INITIAL_DELAY_SECONDS,
    ):
        self.content_service = content_service
        self.interval = interval
        self.initial_delay = initial_delay
        self._tasks: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()

    async def _tick(self, workspace_id: str):
        try:
            await self.content_service.collect_content(workspace_id)
        except Exception as e:
            LOGGER.error(f"Error monitoring workspace {workspace_id}: {e}")

    async def _run(self, workspace_id: str):
        try:
            await asyncio.sleep(self.initial_delay)
            while True:
                await self._tick(workspace_id)
                await asyncio.sleep(self.interval)
        except asyncio.CancelledError:
            LOGGER.debug(f"Monitoring task for workspace {workspace_id} cancelled")
            raise

    @staticmethod
    async def _cancel(task: asyncio.Task):
        task.cancel()
        # wait() never raises the task's own CancelledError, only the caller's
        await asyncio.wait([task])

    async def start_monitoring(self, workspace_id: str):
        async with self._lock:
            previous = self._tasks.pop(workspace_id, None)
            if previous is not None:
                await self._cancel(previous)
            self._tasks[workspace_id] = asyncio.create_task(
                self._run(workspace_id), name=f"monitor-{workspace_id}"
            )
        LOGGER.info(f"Started monitoring workspace {workspace_id} every {self.interval:g}s")

    async def stop_monitoring(self, workspace_id: str) -> bool:
        async with self._lock:
            task = self._tasks.pop(workspace_id, None)
            if task is None:
                return False
            await self._cancel(task)
        LOGGER.info(f"Stopped monitoring workspace {workspace_id}")
        return True

    async def stop_all(self):
        async with self._lock:
            tasks = list(self._tasks.values())
            self._tasks.clear()
            for task in tasks:
                await self._cancel(task)

    def is_monitoring(self, workspace_id: str) -> bool:
        task = self._tasks.get(workspace_id)
        return task is not None and not task.done()

    def active_workspaces(self) -> List[str]:
        return [workspace_id for workspace_id, task in self._tasks.items() if not task.done()]
