"""
Realtime Preview for Film Look Pipeline

This module contains the PreviewRenderer class which grades viewfinder frames
with the color transform only, at a fixed cadence, keeping just the most
recent frame.
"""

import logging
import threading
import time
from typing import Callable, Optional

import numpy as np

from .color import ColorTransform
from .enums import FilmPreset
from .errors import FilmLookError
from .lut import LUTCache

logger = logging.getLogger(__name__)

PreviewSink = Callable[[np.ndarray], None]


class PreviewRenderer:
    """Latest-frame-wins viewfinder grading loop"""

    def __init__(self, cache: LUTCache, transform: ColorTransform, sink: PreviewSink,
                 preset: FilmPreset = FilmPreset.FUJI_C200, fps: float = 30.0):
        if fps <= 0:
            raise ValueError(f"Preview fps must be positive, got {fps}")
        self.cache = cache
        self.transform = transform
        self.sink = sink
        self.preset = preset
        self.interval = 1.0 / fps

        self._pending: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.frames_rendered = 0
        self.frames_dropped = 0
        self.frames_failed = 0

    def set_preset(self, preset: FilmPreset):
        with self._lock:
            self.preset = preset

    def submit_frame(self, frame: np.ndarray):
        """Replace the pending frame; an unrendered older frame is dropped"""
        with self._lock:
            if self._pending is not None:
                self.frames_dropped += 1
            self._pending = frame

    def _take_frame(self):
        with self._lock:
            frame, self._pending = self._pending, None
            return frame, self.preset

    def render_once(self) -> bool:
        """Grade and deliver the latest frame; False when nothing was pending"""
        frame, preset = self._take_frame()
        if frame is None:
            return False

        try:
            lut = self.cache.load_preset(preset)
            graded = self.transform.apply(frame, lut)
        except FilmLookError as e:
            # Show the ungraded frame rather than freezing the viewfinder
            logger.warning(f"Preview grading failed for {preset.value}: {e}")
            self.frames_failed += 1
            graded = frame

        self.sink(graded)
        self.frames_rendered += 1
        return True

    def _run(self):
        next_tick = time.monotonic()
        while not self._stop.is_set():
            try:
                self.render_once()
            except Exception as e:
                logger.error(f"Preview sink failed: {e}")
            next_tick += self.interval
            delay = next_tick - time.monotonic()
            if delay < 0:
                # Behind schedule, skip the missed ticks
                next_tick = time.monotonic()
                delay = 0
            self._stop.wait(delay)

    def start(self):
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="film-preview", daemon=True)
        self._thread.start()
        logger.info(f"Preview loop started at {1.0 / self.interval:.0f} fps")

    def stop(self, timeout: float = 1.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info(f"Preview loop stopped ({self.frames_rendered} rendered, {self.frames_dropped} dropped)")
