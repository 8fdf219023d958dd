"""
Cosmetic progress indicator shown while the forge runs.

Purely visual: it never touches the store or the entry, and it must be
cancelled by whoever started it.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional, TextIO

from forgecore.utils.async_helpers import cancel_and_wait, create_safe_task

FRAMES = "-\\|/"


class Spinner:
    def __init__(self, message: str = "Injecting Key...", delay: float = 0.3, stream: Optional[TextIO] = None):
        self.message = message
        self.delay = delay
        self.stream = stream or sys.stderr
        self.frames_drawn = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = create_safe_task(self._spin(), name="spinner")

    async def stop(self) -> None:
        await cancel_and_wait(self._task)
        self._task = None
        # Leave the cursor on a clean line
        if self.frames_drawn:
            self.stream.write("\r" + " " * (len(self.message) + 2) + "\r")
            self.stream.flush()

    async def _spin(self) -> None:
        while True:
            for frame in FRAMES:
                self.stream.write(f"\r{frame} {self.message}")
                self.stream.flush()
                self.frames_drawn += 1
                await asyncio.sleep(self.delay)
