"""
Film Look Pipeline - analog film emulation for digital captures.

This package provides classes and utilities for:
- .cube LUT parsing and caching
- CPU and GPU 3D LUT color transforms
- Film look compositing (tone curve, bloom, halation, grain, light leak)
- Metadata-preserving re-encoding (EXIF, GPS, orientation)
- Realtime preview grading
- Complete capture pipeline orchestration
"""

__version__ = "1.0.0"
__author__ = "Film Look Pipeline Team"

from .enums import FilmPreset, LookStage
from .errors import FilmLookError, ParseError, RenderError, EncodeError
from .models import (LUTTable, LocationFix, FocalLength, DeviceInfo, CaptureRequest,
                     RenderedImage, EncodedImage, CaptureResult)
from .lut import LUTCache, parse_cube, identity_cube_text
from .color import ColorTransform, TrilinearColorTransform, TorchColorTransform, select_color_transform
from .looks import FilmLook, FILM_LOOKS, neutral_look
from .compositor import FilmLookCompositor
from .encoder import MetadataEncoder
from .metadata import summarize_metadata, exif_orientation_from_rotation
from .preview import PreviewRenderer
from .parallel import CaptureWorker
from .pipeline import FilmPipeline, create_default_config

__all__ = [
    'FilmPreset',
    'LookStage',
    'FilmLookError',
    'ParseError',
    'RenderError',
    'EncodeError',
    'LUTTable',
    'LocationFix',
    'FocalLength',
    'DeviceInfo',
    'CaptureRequest',
    'RenderedImage',
    'EncodedImage',
    'CaptureResult',
    'LUTCache',
    'parse_cube',
    'identity_cube_text',
    'ColorTransform',
    'TrilinearColorTransform',
    'TorchColorTransform',
    'select_color_transform',
    'FilmLook',
    'FILM_LOOKS',
    'neutral_look',
    'FilmLookCompositor',
    'MetadataEncoder',
    'summarize_metadata',
    'exif_orientation_from_rotation',
    'PreviewRenderer',
    'CaptureWorker',
    'FilmPipeline',
    'create_default_config',
]
