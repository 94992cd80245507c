"""
Metadata-Preserving Encoder for Film Look Pipeline

This module contains the MetadataEncoder class which re-serializes a rendered
pixel buffer to JPEG and merges the original capture metadata, the location
fix, the orientation and the device fields back into it.
"""

import io
import logging
from datetime import datetime
from typing import Any, List, Optional, Tuple

import numpy as np
import piexif
from PIL import ExifTags, Image, TiffImagePlugin

from .errors import EncodeError
from .metadata import (IFD_GROUPS, Metadata, empty_metadata, format_exif_datetime,
                       gps_ifd_from_fix, read_capture_metadata, tag_name, to_rational)
from .models import DeviceInfo, EncodedImage, FocalLength, LocationFix, RenderedImage

logger = logging.getLogger(__name__)

MAX_APP1_PAYLOAD = 65533
VALID_ORIENTATIONS = range(1, 9)


def pixels_to_uint8(pixels: np.ndarray) -> np.ndarray:
    arr = np.clip(np.asarray(pixels, dtype=np.float32)[..., :3], 0.0, 1.0)
    return np.rint(arr * 255.0).astype(np.uint8)


def _is_ratio(value: Any) -> bool:
    return isinstance(value, tuple) and len(value) == 2 and all(isinstance(v, int) for v in value)


def coerce_value(ifd_name: str, tag: int, value: Any) -> Any:
    """Reshape a loaded value into the form its declared EXIF type is written from"""
    info = piexif.TAGS.get(ifd_name, {}).get(tag)
    if info is None:
        return value
    if info["type"] in (piexif.TYPES.Byte, piexif.TYPES.Undefined):
        if isinstance(value, int) and 0 <= value <= 0xFF:
            return bytes([value])
        if (isinstance(value, tuple) and value
                and all(isinstance(v, int) and 0 <= v <= 0xFF for v in value)):
            return bytes(value)
    elif info["type"] in (piexif.TYPES.Rational, piexif.TYPES.SRational):
        if _is_ratio(value):
            return TiffImagePlugin.IFDRational(*value)
        if isinstance(value, tuple) and value and all(_is_ratio(v) for v in value):
            return tuple(TiffImagePlugin.IFDRational(*v) for v in value)
    return value


def is_writable(ifd_name: str, tag: int, value: Any) -> bool:
    """Serialize the tag on its own to find out whether it can be written"""
    single = TiffImagePlugin.ImageFileDirectory_v2(group=IFD_GROUPS[ifd_name])
    try:
        single[tag] = value
        single.tobytes()
    except Exception as e:
        logger.warning(f"Cannot write {tag_name(ifd_name, tag)} ({type(value).__name__}): {e}")
        return False
    return True


def build_exif(meta: Metadata) -> Tuple[Image.Exif, List[str]]:
    """Assemble a Pillow Exif from the merged directories; unwritable tags are left out and named"""
    dropped: List[str] = []
    clean = {}
    for ifd_name in IFD_GROUPS:
        ifd = {}
        for tag, value in (meta.get(ifd_name) or {}).items():
            value = coerce_value(ifd_name, tag, value)
            if is_writable(ifd_name, tag, value):
                ifd[tag] = value
            else:
                dropped.append(tag_name(ifd_name, tag))
        clean[ifd_name] = ifd

    exif = Image.Exif()
    for tag, value in clean["0th"].items():
        exif[tag] = value
    exif_ifd = dict(clean["Exif"])
    if clean["Interop"]:
        exif_ifd[ExifTags.IFD.Interop] = clean["Interop"]
    if exif_ifd:
        exif[ExifTags.IFD.Exif] = exif_ifd
    if clean["GPS"]:
        exif[ExifTags.IFD.GPSInfo] = clean["GPS"]
    return exif, dropped


class MetadataEncoder:
    """Encodes rendered captures while carrying their metadata through"""

    def __init__(self, device: DeviceInfo):
        self.device = device

    def encode_carrier(self, pixels: np.ndarray, quality: float) -> bytes:
        """Serialize pixels to a bare JPEG (the pixel carrier)"""
        if not 0.0 < quality <= 1.0:
            raise ValueError(f"Output quality must be in (0, 1], got {quality}")
        try:
            image = Image.fromarray(pixels_to_uint8(pixels))
            buffer = io.BytesIO()
            image.save(buffer, format="JPEG", quality=max(1, int(round(quality * 100))))
            return buffer.getvalue()
        except (OSError, ValueError, TypeError) as e:
            raise EncodeError(f"Failed to serialize rendered pixels: {e}")

    def merge_metadata(self, meta: Metadata,
                       location: Optional[LocationFix],
                       orientation: int,
                       focal_length: Optional[FocalLength],
                       captured_at: Optional[datetime]) -> Metadata:
        """Overwrite GPS, device, timestamp, orientation and focal fields in place"""
        for key, default in empty_metadata().items():
            if meta.get(key) is None:
                meta[key] = default

        if location is not None:
            meta["GPS"] = gps_ifd_from_fix(location)

        stamp = format_exif_datetime(captured_at)
        zeroth, exif = meta["0th"], meta["Exif"]
        zeroth[piexif.ImageIFD.Make] = self.device.make
        zeroth[piexif.ImageIFD.Model] = self.device.model
        zeroth[piexif.ImageIFD.Software] = self.device.software
        zeroth[piexif.ImageIFD.DateTime] = stamp
        zeroth[piexif.ImageIFD.Orientation] = orientation
        exif[piexif.ExifIFD.DateTimeOriginal] = stamp
        exif[piexif.ExifIFD.DateTimeDigitized] = stamp

        if focal_length is not None:
            exif[piexif.ExifIFD.FocalLength] = to_rational(focal_length.physical_mm, 100)
            exif[piexif.ExifIFD.FocalLengthIn35mmFilm] = int(round(focal_length.equivalent_35mm))

        return meta

    def dump_metadata(self, meta: Metadata) -> Tuple[bytes, List[str]]:
        """Serialize to an APP1 payload; returns the bytes and the names of tags left out"""
        exif, dropped = build_exif(meta)
        exif_bytes = exif.tobytes()
        if len(exif_bytes) > MAX_APP1_PAYLOAD:
            logger.warning(f"EXIF block too large ({len(exif_bytes)} bytes), dropping maker note")
            if meta["Exif"].pop(piexif.ExifIFD.MakerNote, None) is not None:
                dropped.append(tag_name("Exif", piexif.ExifIFD.MakerNote))
            exif, dropped_again = build_exif(meta)
            exif_bytes = exif.tobytes()
            dropped.extend(name for name in dropped_again if name not in dropped)
            if len(exif_bytes) > MAX_APP1_PAYLOAD:
                raise EncodeError(f"EXIF block still too large ({len(exif_bytes)} bytes)")
        return exif_bytes, dropped

    def encode(self, rendered: RenderedImage, original: bytes, quality: float = 0.95,
               location: Optional[LocationFix] = None, orientation: int = 1,
               focal_length: Optional[FocalLength] = None,
               captured_at: Optional[datetime] = None) -> EncodedImage:
        """Produce final bytes; metadata problems degrade instead of failing"""
        if orientation not in VALID_ORIENTATIONS:
            raise ValueError(f"Invalid EXIF orientation: {orientation}")

        carrier = self.encode_carrier(rendered.pixels, quality)

        problems = []
        try:
            meta = read_capture_metadata(original)
        except EncodeError as e:
            logger.warning(f"Original metadata lost: {e}")
            problems.append(str(e))
            meta = empty_metadata()

        try:
            self.merge_metadata(meta, location, orientation, focal_length, captured_at)
            exif_bytes, dropped = self.dump_metadata(meta)
            output = io.BytesIO()
            piexif.insert(exif_bytes, carrier, output)
            data = output.getvalue()
        except (EncodeError, ValueError, TypeError) as e:
            logger.error(f"Metadata merge failed, emitting pixels without metadata: {e}")
            return EncodedImage(data=carrier, metadata_merged=False,
                                metadata_error=f"Metadata merge failed: {e}")

        if dropped:
            problems.append(f"Dropped unwritable tags: {', '.join(dropped)}")
        return EncodedImage(data=data, metadata_merged=not problems,
                            metadata_error="; ".join(problems) or None)
