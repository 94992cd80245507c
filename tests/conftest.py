"""Pytest fixtures for the film look pipeline tests."""

import io
from typing import Callable, Optional

import numpy as np
import piexif
import pytest
from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from filmlook.enums import FilmPreset
from filmlook.lut import identity_cube_text
from filmlook.pipeline import FilmPipeline


def cube_text_from(dimension: int, fn: Callable[[float, float, float], tuple]) -> str:
    """Build .cube text by evaluating fn(r, g, b) on the lattice (R fastest)."""
    scale = float(dimension - 1)
    lines = ["# generated for tests", f"LUT_3D_SIZE {dimension}"]
    for b in range(dimension):
        for g in range(dimension):
            for r in range(dimension):
                out = fn(r / scale, g / scale, b / scale)
                lines.append(" ".join(f"{v:.9f}" for v in out))
    return "\n".join(lines) + "\n"


def jpeg_bytes(pixels: np.ndarray, exif: Optional[Image.Exif] = None, quality: int = 95) -> bytes:
    """Encode uint8 RGB pixels as JPEG, optionally with an EXIF block."""
    buffer = io.BytesIO()
    kwargs = {"format": "JPEG", "quality": quality}
    if exif is not None:
        kwargs["exif"] = exif.tobytes()
    Image.fromarray(pixels).save(buffer, **kwargs)
    return buffer.getvalue()


@pytest.fixture
def make_cube():
    return cube_text_from


@pytest.fixture
def make_jpeg():
    return jpeg_bytes


@pytest.fixture
def lut_dir(tmp_path):
    """Directory with an identity LUT for every preset."""
    directory = tmp_path / "luts"
    directory.mkdir()
    text = identity_cube_text(17)
    for preset in FilmPreset:
        (directory / f"{preset.lut_resource_name}.cube").write_text(text)
    return directory


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


COMPOSITE_IMAGE = 0xA460  # not in piexif's tag tables


@pytest.fixture
def original_exif():
    exif = Image.Exif()
    exif[piexif.ImageIFD.Make] = "OriginalMake"
    exif[piexif.ImageIFD.Model] = "OriginalModel"
    exif[piexif.ImageIFD.Software] = "17.4"
    exif[piexif.ImageIFD.Orientation] = 1
    exif[piexif.ImageIFD.XResolution] = IFDRational(72, 1)
    exif[piexif.ImageIFD.YResolution] = IFDRational(72, 1)
    exif[piexif.ImageIFD.Artist] = "Jane Doe"
    exif[ExifTags.IFD.Exif] = {
        piexif.ExifIFD.ExposureTime: IFDRational(1, 125),
        piexif.ExifIFD.FNumber: IFDRational(18, 10),
        piexif.ExifIFD.ISOSpeedRatings: 200,
        piexif.ExifIFD.FocalLength: IFDRational(426, 100),
        piexif.ExifIFD.ExposureMode: 0,
        piexif.ExifIFD.Flash: 16,
        piexif.ExifIFD.LensModel: "Back Camera 4.26mm f/1.8",
        piexif.ExifIFD.DateTimeOriginal: "2020:01:01 00:00:00",
        COMPOSITE_IMAGE: 2,
    }
    exif[ExifTags.IFD.GPSInfo] = {
        piexif.GPSIFD.GPSLatitudeRef: "N",
        piexif.GPSIFD.GPSLatitude: (IFDRational(48, 1), IFDRational(51, 1), IFDRational(2400, 100)),
        piexif.GPSIFD.GPSLongitudeRef: "E",
        piexif.GPSIFD.GPSLongitude: (IFDRational(2, 1), IFDRational(21, 1), IFDRational(0, 1)),
    }
    return exif


@pytest.fixture
def gray_pixels():
    return np.full((64, 96, 3), 128, dtype=np.uint8)


@pytest.fixture
def original_jpeg(gray_pixels, original_exif):
    return jpeg_bytes(gray_pixels, original_exif)


@pytest.fixture
def pipeline(lut_dir):
    film_pipeline = FilmPipeline({
        "lut_directory": str(lut_dir),
        "use_gpu": False,
        "light_leak_probability": 0.0,
        "seed": 7,
    })
    yield film_pipeline
    film_pipeline.shutdown()
