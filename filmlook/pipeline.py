"""
Main Pipeline for Film Look Pipeline

This module contains the FilmPipeline class which owns the LUT cache, the
color transform, the compositor and the encoder, and orchestrates complete
capture processing.
"""

import io
import json
import logging
import time
import traceback
from concurrent.futures import Future
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from .color import ColorTransform, select_color_transform
from .compositor import FilmLookCompositor
from .encoder import MetadataEncoder
from .enums import FilmPreset
from .errors import RenderError
from .looks import FilmLook, look_for
from .lut import LUTCache
from .models import CaptureRequest, CaptureResult, DeviceInfo, RenderedImage
from .parallel import CaptureWorker
from .preview import PreviewRenderer, PreviewSink

logger = logging.getLogger(__name__)

IMAGE_PATTERNS = ['*.jpg', '*.jpeg', '*.png', '*.tif', '*.tiff', '*.heic', '*.webp']

DEFAULT_CONFIG: Dict[str, Any] = {
    "lut_directory": "luts",
    "output_quality": 0.95,
    "use_gpu": True,
    "preview_fps": 30,
    "max_workers": 1,
    "batch_size": 8,
    "light_leak_probability": None,
    "seed": None,
    "preload_luts": True,
    "device": {
        "make": "Apple",
        "model": "iPhone",
        "software": "Film Look Camera",
    },
}


def decode_capture(data: bytes) -> np.ndarray:
    """Decode encoded image bytes to float32 RGB in [0, 1]"""
    try:
        with Image.open(io.BytesIO(data)) as img:
            rgb = img.convert("RGB")
            return np.asarray(rgb, dtype=np.float32) / 255.0
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise RenderError(f"Could not decode capture: {e}")


class FilmPipeline:
    """Capture processing orchestrator"""

    def __init__(self, config: Optional[Dict[str, Any]] = None,
                 color_transform: Optional[ColorTransform] = None):
        self.config = dict(DEFAULT_CONFIG)
        self.config.update(config or {})
        device = dict(DEFAULT_CONFIG["device"])
        device.update(self.config.get("device") or {})
        self.config["device"] = device

        # Initialize components
        self.lut_cache = LUTCache(self.config["lut_directory"])
        self.color_transform = color_transform or select_color_transform(self.config["use_gpu"])
        self.compositor = FilmLookCompositor()
        self.encoder = MetadataEncoder(DeviceInfo(**device))
        self.worker = CaptureWorker(self.config["max_workers"])

        if self.config["preload_luts"]:
            loaded = self.lut_cache.preload_all()
            logger.info(f"Preloaded {loaded}/{len(FilmPreset)} film LUTs")

        logger.info("Film pipeline initialized successfully")

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> "FilmPipeline":
        with open(config_path, 'r') as f:
            return cls(json.load(f))

    def look(self, preset: FilmPreset) -> FilmLook:
        return look_for(preset, self.config["light_leak_probability"])

    def _rng(self, seed: Optional[int] = None) -> np.random.Generator:
        if seed is None:
            seed = self.config["seed"]
        return np.random.default_rng(seed)

    def grade(self, image: np.ndarray, preset: FilmPreset) -> np.ndarray:
        """Color transform only; ParseError propagates so no ungraded output escapes"""
        lut = self.lut_cache.load_preset(preset)
        return self.color_transform.apply(image, lut)

    def render(self, image: np.ndarray, preset: FilmPreset,
               rng: Optional[np.random.Generator] = None,
               look: Optional[FilmLook] = None) -> RenderedImage:
        """Color transform followed by the full film look"""
        if rng is None:
            rng = self._rng()
        graded = self.grade(image, preset)
        pixels = self.compositor.render(graded, look or self.look(preset), rng)
        return RenderedImage(pixels=pixels, preset=preset)

    def process_capture(self, request: CaptureRequest) -> CaptureResult:
        """Grade, composite and encode one capture; request.data stays untouched"""
        start_time = time.time()
        logger.info(f"Processing capture with {request.preset.display_name}")

        image = decode_capture(request.data)
        rendered = self.render(image, request.preset, self._rng(request.seed))
        encoded = self.encoder.encode(
            rendered,
            request.data,
            quality=self.config["output_quality"],
            location=request.location,
            orientation=request.orientation,
            focal_length=request.focal_length,
            captured_at=request.captured_at or datetime.now(),
        )

        processing_time = time.time() - start_time
        logger.info(f"Capture processed in {processing_time:.2f}s ({len(encoded.data)} bytes)")

        return CaptureResult(
            data=encoded.data,
            preset=request.preset,
            metadata_merged=encoded.metadata_merged,
            metadata_error=encoded.metadata_error,
            processing_time=processing_time,
        )

    def submit_capture(self, request: CaptureRequest) -> Future:
        """Queue a capture on the background worker"""
        return self.worker.submit(self.process_capture, request)

    def create_preview(self, sink: PreviewSink,
                       preset: FilmPreset = FilmPreset.FUJI_C200) -> PreviewRenderer:
        return PreviewRenderer(self.lut_cache, self.color_transform, sink,
                               preset=preset, fps=self.config["preview_fps"])

    def process_directory(self, input_path: Union[str, Path], output_path: Union[str, Path],
                          preset: FilmPreset) -> Dict:
        """Process every image in a directory; failed captures keep their original bytes"""
        logger.info(f"Starting directory processing: {input_path}")
        Path(output_path).mkdir(parents=True, exist_ok=True)

        input_path = Path(input_path)
        image_files: List[Path] = []
        if input_path.is_file():
            image_files = [input_path]
        else:
            for pattern in IMAGE_PATTERNS:
                image_files.extend(input_path.glob(pattern))
            image_files = sorted(set(image_files))

        stats = {
            "total_files": len(image_files),
            "processed": 0,
            "failed": 0,
            "fallback_written": 0,
            "metadata_lost": 0,
            "processing_time": 0,
            "preset": preset.value,
        }
        if not image_files:
            logger.warning(f"No image files found in {input_path}")
            return stats

        start_time = time.time()

        # Process in batches so only one batch of captures is held in memory
        batch_size = max(1, int(self.config["batch_size"]))
        for i in range(0, len(image_files), batch_size):
            batch_files = image_files[i:i + batch_size]
            logger.info(f"Processing batch {i // batch_size + 1}: {len(batch_files)} files")

            requests = [CaptureRequest(data=f.read_bytes(), preset=preset) for f in batch_files]
            results = self.worker.process_batch_parallel(requests, self._process_wrapper)

            for file_path, request, result in zip(batch_files, requests, results):
                if result is None:
                    stats["failed"] += 1
                    fallback = Path(output_path) / f"{file_path.stem}_original{file_path.suffix}"
                    fallback.write_bytes(request.data)
                    stats["fallback_written"] += 1
                    continue

                output_file = Path(output_path) / f"{file_path.stem}_{preset.value}.jpg"
                output_file.write_bytes(result.data)
                stats["processed"] += 1
                if not result.metadata_merged:
                    stats["metadata_lost"] += 1

        stats["processing_time"] = time.time() - start_time
        logger.info(f"Processing complete. Processed: {stats['processed']}, Failed: {stats['failed']}")
        logger.info(f"Total processing time: {stats['processing_time']:.2f} seconds")
        return stats

    def _process_wrapper(self, request: CaptureRequest) -> Optional[CaptureResult]:
        """Wrapper for batch processing so one bad capture does not stop the rest"""
        try:
            return self.process_capture(request)
        except Exception as e:
            logger.error(f"Failed to process capture: {e}")
            logger.error(f"Traceback: {traceback.format_exc()}")
            return None

    def shutdown(self):
        self.worker.shutdown()


def create_default_config(config_path: Union[str, Path] = 'config.json') -> Dict[str, Any]:
    """Create default configuration file"""
    config = json.loads(json.dumps(DEFAULT_CONFIG))

    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)

    return config
