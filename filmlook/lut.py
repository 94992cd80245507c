"""
LUT Loader for Film Look Pipeline

This module contains the .cube parser and the LUTCache class which owns the
parsed lookup tables for every film preset used during a session.
"""

import logging
import math
import threading
from pathlib import Path
from typing import Dict, List, Union

import numpy as np

from .enums import FilmPreset
from .errors import ParseError
from .models import LUTTable

logger = logging.getLogger(__name__)

CUBE_EXTENSION = ".cube"


def parse_cube(text: str, name: str = "<memory>") -> LUTTable:
    """Parse Adobe .cube text into an RGBA LUTTable"""
    dimension = None
    values: List[float] = []

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith('#'):
            continue

        tokens = line.split()
        if tokens[0].upper().startswith('LUT_3D_SIZE'):
            try:
                dimension = int(tokens[-1])
            except ValueError:
                raise ParseError(f"{name}: malformed LUT_3D_SIZE declaration: {line!r}")
            continue

        # Headers (TITLE, DOMAIN_MIN, ...) and stray text are skipped here
        if len(tokens) != 3:
            continue
        try:
            triple = [float(t) for t in tokens]
        except ValueError:
            continue
        if not all(math.isfinite(v) for v in triple):
            continue
        values.extend(triple)

    if dimension is None:
        raise ParseError(f"{name}: missing LUT_3D_SIZE declaration")
    if dimension <= 0:
        raise ParseError(f"{name}: LUT_3D_SIZE must be positive, got {dimension}")

    expected = dimension ** 3
    found = len(values) // 3
    if found != expected:
        raise ParseError(f"{name}: expected {expected} color triples for size {dimension}, got {found}")

    rgb = np.asarray(values, dtype=np.float32).reshape(expected, 3)
    rgba = np.ones((expected, 4), dtype=np.float32)
    rgba[:, :3] = rgb

    return LUTTable(dimension=dimension, table=rgba.reshape(-1))


def identity_cube_text(dimension: int, title: str = "Identity") -> str:
    """Render a canonical identity cube (R varies fastest)"""
    if dimension < 2:
        raise ValueError("Identity cube needs at least 2 lattice points per axis")

    scale = float(dimension - 1)
    lines = [f'TITLE "{title}"', f"LUT_3D_SIZE {dimension}"]
    for b in range(dimension):
        for g in range(dimension):
            for r in range(dimension):
                lines.append(f"{r / scale:.9f} {g / scale:.9f} {b / scale:.9f}")
    return "\n".join(lines) + "\n"


class LUTCache:
    """Explicitly owned cache of parsed LUT tables, keyed by resource name"""

    def __init__(self, lut_directory: Union[str, Path]):
        self.lut_directory = Path(lut_directory)
        self._tables: Dict[str, LUTTable] = {}
        self._lock = threading.Lock()
        logger.info(f"Initialized LUT cache for directory: {self.lut_directory}")

    def resource_path(self, resource_name: str) -> Path:
        return self.lut_directory / f"{resource_name}{CUBE_EXTENSION}"

    def load(self, resource_name: str) -> LUTTable:
        """Return the cached table for a resource, parsing it on first use"""
        with self._lock:
            cached = self._tables.get(resource_name)
        if cached is not None:
            return cached

        path = self.resource_path(resource_name)
        if not path.is_file():
            raise ParseError(f"LUT resource not found: {path}")

        try:
            text = path.read_text(encoding='utf-8', errors='ignore')
        except OSError as e:
            raise ParseError(f"Could not read LUT resource {path}: {e}")

        table = parse_cube(text, name=path.name)

        # Parsing ran unlocked, so another thread may have finished first
        with self._lock:
            table = self._tables.setdefault(resource_name, table)

        logger.info(f"Loaded LUT {resource_name} (size {table.dimension})")
        return table

    def load_preset(self, preset: FilmPreset) -> LUTTable:
        return self.load(preset.lut_resource_name)

    def preload(self, preset: FilmPreset) -> bool:
        """Warm the cache for a preset; failures are absorbed"""
        try:
            self.load_preset(preset)
            return True
        except ParseError as e:
            logger.debug(f"Preload skipped for {preset.value}: {e}")
            return False

    def preload_all(self) -> int:
        return sum(1 for preset in FilmPreset if self.preload(preset))

    def clear(self):
        with self._lock:
            self._tables.clear()

    def __contains__(self, resource_name: str) -> bool:
        with self._lock:
            return resource_name in self._tables

    def __len__(self) -> int:
        with self._lock:
            return len(self._tables)
