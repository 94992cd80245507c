"""
Data models for Film Look Pipeline

This module contains data structures used throughout the pipeline for
representing lookup tables, capture inputs and processing results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import numpy as np

from .enums import FilmPreset


@dataclass(frozen=True)
class LUTTable:
    """Parsed 3D lookup table: dimension plus flat RGBA float array"""
    dimension: int
    table: np.ndarray = field(repr=False)

    def __post_init__(self):
        if self.dimension <= 0:
            raise ValueError(f"LUT dimension must be positive, got {self.dimension}")
        expected = self.dimension ** 3 * 4
        if self.table.size != expected:
            raise ValueError(f"LUT table has {self.table.size} values, expected {expected}")
        self.table.setflags(write=False)

    def lattice(self) -> np.ndarray:
        """View of the table as (N, N, N, 4), indexed [b, g, r]"""
        n = self.dimension
        return self.table.reshape(n, n, n, 4)


@dataclass(frozen=True)
class LocationFix:
    """Location fix supplied by the positioning collaborator"""
    latitude: float
    longitude: float
    timestamp: datetime
    altitude: Optional[float] = None
    speed: Optional[float] = None  # m/s, negative means invalid
    course: Optional[float] = None  # degrees from true north, negative means invalid


@dataclass(frozen=True)
class FocalLength:
    """Physical and 35mm-equivalent focal length of the capture"""
    physical_mm: float
    equivalent_35mm: float


@dataclass(frozen=True)
class DeviceInfo:
    """Device identification written into the TIFF group"""
    make: str
    model: str
    software: str


@dataclass
class CaptureRequest:
    """One shutter press worth of input for the full capture pipeline"""
    data: bytes
    preset: FilmPreset
    orientation: int = 1
    location: Optional[LocationFix] = None
    focal_length: Optional[FocalLength] = None
    captured_at: Optional[datetime] = None
    seed: Optional[int] = None


@dataclass
class RenderedImage:
    """Pixel buffer (float32 HxWx3 in [0, 1]) and the preset that produced it"""
    pixels: np.ndarray
    preset: Optional[FilmPreset] = None


@dataclass
class EncodedImage:
    """Encoder output; metadata_error is set when the original metadata was lost"""
    data: bytes
    metadata_merged: bool = True
    metadata_error: Optional[str] = None


@dataclass
class CaptureResult:
    """Final artifact of a processed capture"""
    data: bytes
    preset: FilmPreset
    metadata_merged: bool
    metadata_error: Optional[str] = None
    processing_time: float = 0.0
