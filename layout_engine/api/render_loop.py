"""
Render loop - ticks the layout controller at a fixed rate and streams frames
"""
import asyncio
import logging
from typing import Optional

from ..core.layout_controller import LayoutController
from .websocket_manager import FRAME_STREAM, WebSocketManager, websocket_manager

logger = logging.getLogger(__name__)


class RenderLoop:
    """
    Drives ``LayoutController.tick`` from an asyncio task.

    Frames are broadcast only while someone is subscribed to the frame stream;
    the controller is ticked regardless so animations finish on time.
    """

    def __init__(self,
                 controller: LayoutController,
                 manager: Optional[WebSocketManager] = None,
                 tick_rate: float = 60.0):
        if tick_rate <= 0:
            raise ValueError(f"Tick rate must be positive, got {tick_rate}")
        self.controller = controller
        self.manager = manager or websocket_manager
        self.tick_rate = tick_rate
        self.frames_broadcast = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self):
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Render loop started at {self.tick_rate:g} Hz")

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Render loop stopped")

    async def step(self):
        """Tick once and broadcast the frame to subscribers"""
        frame = self.controller.tick()
        if self.manager.connection_count(FRAME_STREAM):
            await self.manager.broadcast_frame(frame)
            self.frames_broadcast += 1
        return frame

    async def _run(self):
        interval = 1.0 / self.tick_rate
        while True:
            try:
                await self.step()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Render loop tick failed: {e}")
            await asyncio.sleep(interval)
