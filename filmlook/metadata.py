"""
Capture Metadata for Film Look Pipeline

This module contains helpers that read the EXIF/GPS directories out of an
encoded capture, project a location fix into GPS fields and summarize the
exposure information for display.
"""

import io
import logging
import math
import numbers
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

import piexif
from PIL import ExifTags, Image, UnidentifiedImageError
from PIL.TiffImagePlugin import IFDRational

from .errors import EncodeError
from .models import LocationFix

logger = logging.getLogger(__name__)

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
RATIONAL_DENOMINATOR = 10000

# Directory name -> Pillow group id used when serializing the directory
IFD_GROUPS = {
    "0th": None,
    "Exif": int(ExifTags.IFD.Exif),
    "GPS": int(ExifTags.IFD.GPSInfo),
    "Interop": int(ExifTags.IFD.Interop),
}

# Tags describing the old pixel layout, meaningless once pixels are re-encoded
IMAGE_STRUCTURE_TAGS = frozenset({
    piexif.ImageIFD.ImageWidth, piexif.ImageIFD.ImageLength, piexif.ImageIFD.BitsPerSample,
    piexif.ImageIFD.Compression, piexif.ImageIFD.PhotometricInterpretation,
    piexif.ImageIFD.StripOffsets, piexif.ImageIFD.SamplesPerPixel, piexif.ImageIFD.RowsPerStrip,
    piexif.ImageIFD.StripByteCounts, piexif.ImageIFD.PlanarConfiguration, piexif.ImageIFD.Predictor,
    piexif.ImageIFD.TileWidth, piexif.ImageIFD.TileLength, piexif.ImageIFD.TileOffsets,
    piexif.ImageIFD.TileByteCounts, piexif.ImageIFD.ExtraSamples, piexif.ImageIFD.SampleFormat,
    piexif.ImageIFD.JPEGTables, piexif.ImageIFD.JPEGInterchangeFormat,
    piexif.ImageIFD.JPEGInterchangeFormatLength, piexif.ImageIFD.NewSubfileType,
    piexif.ImageIFD.SubIFDs,
})

SUB_IFD_POINTERS = frozenset({int(ExifTags.IFD.Exif), int(ExifTags.IFD.GPSInfo)})

Metadata = Dict[str, Dict[int, Any]]


def empty_metadata() -> Metadata:
    return {name: {} for name in IFD_GROUPS}


def read_capture_metadata(data: bytes) -> Metadata:
    """Extract the 0th/Exif/GPS/Interop directories of an encoded image; EncodeError if unreadable"""
    try:
        img = Image.open(io.BytesIO(data))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise EncodeError(f"Original bytes are not a recognized image container: {e}")

    with img:
        try:
            exif = img.getexif()
            meta = empty_metadata()
            meta["0th"] = {tag: exif[tag] for tag in exif
                           if tag not in SUB_IFD_POINTERS and tag not in IMAGE_STRUCTURE_TAGS}
            meta["Exif"] = dict(exif.get_ifd(ExifTags.IFD.Exif))
            if ExifTags.IFD.Interop in meta["Exif"]:
                meta["Interop"] = dict(exif.get_ifd(ExifTags.IFD.Interop))
                del meta["Exif"][ExifTags.IFD.Interop]
            meta["GPS"] = dict(exif.get_ifd(ExifTags.IFD.GPSInfo))
        except Exception as e:
            raise EncodeError(f"Could not parse {img.format} metadata: {e}")

    return meta


def exif_orientation_from_rotation(angle: float) -> int:
    """Map a capture rotation angle in degrees to an EXIF orientation code"""
    normalized = int(angle) % 360
    return {0: 1, 90: 6, 180: 3, 270: 8}.get(normalized, 1)


def tag_name(ifd_name: str, tag: int) -> str:
    group = "Image" if ifd_name == "0th" else ifd_name
    info = piexif.TAGS.get(group, {}).get(tag)
    return f"{ifd_name}.{info['name'] if info else hex(tag)}"


def to_rational(value: float, denominator: int = RATIONAL_DENOMINATOR) -> IFDRational:
    return IFDRational(int(round(value * denominator)), denominator)


def from_rational(value: Any) -> Optional[float]:
    if isinstance(value, tuple) and len(value) == 2 and all(isinstance(v, int) for v in value):
        num, den = value
        return num / den if den else None
    if isinstance(value, numbers.Number):
        result = float(value)
        return result if math.isfinite(result) else None
    return None


def to_dms(value: float) -> Tuple[IFDRational, IFDRational, IFDRational]:
    """Absolute decimal degrees -> (degrees, minutes, seconds) rationals"""
    value = abs(value)
    degrees = int(value)
    minutes_float = (value - degrees) * 60.0
    minutes = int(minutes_float)
    seconds = int(round((minutes_float - minutes) * 60.0 * RATIONAL_DENOMINATOR))
    if seconds >= 60 * RATIONAL_DENOMINATOR:
        seconds -= 60 * RATIONAL_DENOMINATOR
        minutes += 1
    if minutes >= 60:
        minutes -= 60
        degrees += 1
    return (IFDRational(degrees, 1), IFDRational(minutes, 1),
            IFDRational(seconds, RATIONAL_DENOMINATOR))


def from_dms(dms: Any) -> Optional[float]:
    try:
        d, m, s = (from_rational(part) for part in dms)
    except (TypeError, ValueError):
        return None
    if d is None or m is None or s is None:
        return None
    return d + m / 60.0 + s / 3600.0


def _text(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        return value.rstrip(b"\x00").decode("utf-8", errors="replace")
    if isinstance(value, str):
        return value.rstrip("\x00")
    return None


def _byte(value: Any) -> Optional[int]:
    """BYTE fields come back as int or as raw bytes depending on the writer"""
    if isinstance(value, bytes):
        return value[0] if value else None
    if isinstance(value, int):
        return value
    return None


def gps_ifd_from_fix(fix: LocationFix) -> Dict[int, Any]:
    """Project a location fix into a fresh GPS IFD"""
    timestamp = fix.timestamp
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    seconds = timestamp.second + timestamp.microsecond / 1e6

    gps = {
        piexif.GPSIFD.GPSVersionID: b"\x02\x03\x00\x00",
        piexif.GPSIFD.GPSLatitudeRef: "N" if fix.latitude >= 0 else "S",
        piexif.GPSIFD.GPSLatitude: to_dms(fix.latitude),
        piexif.GPSIFD.GPSLongitudeRef: "E" if fix.longitude >= 0 else "W",
        piexif.GPSIFD.GPSLongitude: to_dms(fix.longitude),
        piexif.GPSIFD.GPSDateStamp: timestamp.strftime("%Y:%m:%d"),
        piexif.GPSIFD.GPSTimeStamp: (IFDRational(timestamp.hour, 1), IFDRational(timestamp.minute, 1),
                                     IFDRational(int(round(seconds * 100)), 100)),
    }

    if fix.altitude is not None:
        gps[piexif.GPSIFD.GPSAltitudeRef] = 0 if fix.altitude >= 0 else 1
        gps[piexif.GPSIFD.GPSAltitude] = to_rational(abs(fix.altitude))

    if fix.speed is not None and fix.speed >= 0:
        gps[piexif.GPSIFD.GPSSpeedRef] = "K"  # km/h
        gps[piexif.GPSIFD.GPSSpeed] = to_rational(fix.speed * 3.6)

    if fix.course is not None and fix.course >= 0:
        gps[piexif.GPSIFD.GPSImgDirectionRef] = "T"  # true north
        gps[piexif.GPSIFD.GPSImgDirection] = to_rational(fix.course)

    return gps


def gps_position(gps: Dict[int, Any]) -> Optional[Tuple[float, float, Optional[float]]]:
    """Signed (latitude, longitude, altitude) decoded from a GPS IFD"""
    lat = from_dms(gps.get(piexif.GPSIFD.GPSLatitude))
    lon = from_dms(gps.get(piexif.GPSIFD.GPSLongitude))
    if lat is None or lon is None:
        return None
    if _text(gps.get(piexif.GPSIFD.GPSLatitudeRef)) == "S":
        lat = -lat
    if _text(gps.get(piexif.GPSIFD.GPSLongitudeRef)) == "W":
        lon = -lon
    alt = from_rational(gps.get(piexif.GPSIFD.GPSAltitude))
    if alt is not None and _byte(gps.get(piexif.GPSIFD.GPSAltitudeRef)) == 1:
        alt = -alt
    return lat, lon, alt


EXPOSURE_MODES = {0: "Auto exposure", 1: "Manual exposure", 2: "Auto bracket"}


@dataclass
class CaptureSummary:
    """Human-readable exposure and device information of a capture"""
    iso: Optional[str] = None
    shutter_speed: Optional[str] = None
    aperture: Optional[str] = None
    focal_length: Optional[str] = None
    exposure_mode: Optional[str] = None
    flash: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    altitude: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    software: Optional[str] = None
    lens: Optional[str] = None


def summarize_metadata(data: bytes) -> CaptureSummary:
    """Read the capture metadata and format the fields a gallery would show"""
    meta = read_capture_metadata(data)
    zeroth, exif, gps = meta["0th"], meta["Exif"], meta["GPS"]
    summary = CaptureSummary()

    iso = exif.get(piexif.ExifIFD.ISOSpeedRatings)
    if isinstance(iso, tuple):
        iso = iso[0] if iso else None
    if iso is not None:
        summary.iso = f"ISO {iso}"

    exposure = from_rational(exif.get(piexif.ExifIFD.ExposureTime))
    if exposure:
        summary.shutter_speed = f"{exposure:.1f}s" if exposure >= 1 else f"1/{int(round(1 / exposure))}s"

    f_number = from_rational(exif.get(piexif.ExifIFD.FNumber))
    if f_number:
        summary.aperture = f"f/{f_number:.1f}"

    # Prefer the 35mm equivalent over the physical focal length
    equivalent = exif.get(piexif.ExifIFD.FocalLengthIn35mmFilm)
    physical = from_rational(exif.get(piexif.ExifIFD.FocalLength))
    if equivalent:
        summary.focal_length = f"{equivalent}mm"
    elif physical:
        summary.focal_length = f"{physical:.0f}mm"

    mode = exif.get(piexif.ExifIFD.ExposureMode)
    if mode in EXPOSURE_MODES:
        summary.exposure_mode = EXPOSURE_MODES[mode]

    flash = exif.get(piexif.ExifIFD.Flash)
    if isinstance(flash, int):
        summary.flash = "Flash fired" if flash & 0x01 else "Flash off"

    position = gps_position(gps)
    if position is not None:
        lat, lon, alt = position
        summary.latitude = f"{abs(lat):.6f}°{'N' if lat >= 0 else 'S'}"
        summary.longitude = f"{abs(lon):.6f}°{'E' if lon >= 0 else 'W'}"
        summary.altitude = f"{alt or 0.0:.1f}m"

    summary.make = _text(zeroth.get(piexif.ImageIFD.Make))
    summary.model = _text(zeroth.get(piexif.ImageIFD.Model))
    summary.software = _text(zeroth.get(piexif.ImageIFD.Software))

    lens = _text(exif.get(piexif.ExifIFD.LensModel)) or _text(exif.get(piexif.ExifIFD.LensMake))
    if lens is None and summary.make and summary.model:
        lens = f"{summary.make} {summary.model} built-in lens"
    summary.lens = lens

    return summary


def format_exif_datetime(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime(EXIF_DATETIME_FORMAT)
