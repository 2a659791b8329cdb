"""
flood-lab/simulator/loop.py

Tick Driver
===========
Calls Orchestrator.update(dt) once per frame from a background thread,
the way a browser's animation-frame loop would.

Deltas that are zero, negative or NaN are skipped; long stalls are clamped
to MAX_TICK_SECONDS so a paused process doesn't teleport every particle to
the server. Control-surface calls from other threads must hold `lock`.
"""

import logging
import math
import threading
import time
from typing import Callable, Optional

from config import MAX_TICK_SECONDS, TICK_FPS

logger = logging.getLogger("floodlab.loop")


class TickDriver:
    def __init__(
        self,
        orchestrator,
        fps: int = TICK_FPS,
        on_tick: Optional[Callable[[int], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.orchestrator = orchestrator
        self.fps = max(1, int(fps))
        self.on_tick = on_tick
        self.clock = clock
        self.lock = threading.Lock()
        self.tick_count = 0

        self._stop_event = threading.Event()
        self._thread = None
        self._last_timestamp = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def step(self, timestamp: float) -> bool:
        """
        Advance the simulation to `timestamp` (seconds).
        Returns True if an update ran. The first call only primes the clock.
        """
        last, self._last_timestamp = self._last_timestamp, timestamp
        if last is None:
            return False

        dt = timestamp - last
        if math.isnan(dt) or dt <= 0:
            return False

        with self.lock:
            self.orchestrator.update(min(dt, MAX_TICK_SECONDS))
            self.tick_count += 1

        if self.on_tick:
            try:
                self.on_tick(self.tick_count)
            except Exception as e:
                logger.error(f"Tick callback error: {e}")
        return True

    def run(self):
        """Main loop — ticks until stop() is called."""
        self._last_timestamp = None
        frame = 1.0 / self.fps
        logger.info(f"[LOOP] Tick driver started at {self.fps} fps")

        while not self._stop_event.is_set():
            self.step(self.clock())
            self._stop_event.wait(frame)

        logger.info("[LOOP] Tick driver stopped")

    def start(self):
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 1.0):
        """Signal the loop to end and wait up to `timeout` seconds for it."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
