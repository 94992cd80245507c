"""
Color Transform for Film Look Pipeline

This module contains the ColorTransform interface with a CPU trilinear
reference implementation and a torch backend that samples the LUT as a 3D
texture on the GPU.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np
import torch
import torch.nn.functional as F

from .errors import RenderError
from .models import LUTTable

logger = logging.getLogger(__name__)


def _split_alpha(image: np.ndarray) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Validate an HxWx3 / HxWx4 float image and separate its alpha channel"""
    if image is None or image.ndim != 3 or image.shape[2] not in (3, 4):
        shape = None if image is None else image.shape
        raise RenderError(f"Expected an HxWx3 or HxWx4 image, got shape {shape}")
    rgb = image[..., :3].astype(np.float32, copy=False)
    alpha = image[..., 3:] if image.shape[2] == 4 else None
    return rgb, alpha


def _join_alpha(rgb: np.ndarray, alpha: Optional[np.ndarray]) -> np.ndarray:
    if alpha is None:
        return rgb
    return np.concatenate([rgb, alpha.astype(np.float32, copy=False)], axis=2)


class ColorTransform(ABC):
    """Maps every pixel through a 3D LUT; implementations must be side-effect free"""

    name = "abstract"

    @abstractmethod
    def apply(self, image: np.ndarray, lut: LUTTable) -> np.ndarray:
        """Return a new image whose RGB is sampled from the LUT"""


class TrilinearColorTransform(ColorTransform):
    """CPU reference implementation with explicit 8-corner interpolation"""

    name = "cpu-trilinear"

    def __init__(self, rows_per_block: int = 512):
        self.rows_per_block = max(1, int(rows_per_block))

    def apply(self, image: np.ndarray, lut: LUTTable) -> np.ndarray:
        rgb, alpha = _split_alpha(image)
        h, w, _ = rgb.shape
        size = lut.dimension
        table = lut.lattice()[..., :3]
        scale = np.float32(size - 1)

        out = np.empty((h, w, 3), dtype=np.float32)

        for y0 in range(0, h, self.rows_per_block):
            y1 = min(h, y0 + self.rows_per_block)
            block = rgb[y0:y1].reshape(-1, 3)
            coords = np.clip(block, 0.0, 1.0) * scale
            i0 = np.floor(coords).astype(np.int32)
            frac = coords - i0
            i1 = np.minimum(i0 + 1, size - 1)

            r0, g0, b0 = i0[:, 0], i0[:, 1], i0[:, 2]
            r1, g1, b1 = i1[:, 0], i1[:, 1], i1[:, 2]
            fr, fg, fb = frac[:, 0:1], frac[:, 1:2], frac[:, 2:3]

            # lattice is indexed [b, g, r]
            c000 = table[b0, g0, r0]
            c100 = table[b0, g0, r1]
            c010 = table[b0, g1, r0]
            c110 = table[b0, g1, r1]
            c001 = table[b1, g0, r0]
            c101 = table[b1, g0, r1]
            c011 = table[b1, g1, r0]
            c111 = table[b1, g1, r1]

            c00 = c000 * (1 - fr) + c100 * fr
            c10 = c010 * (1 - fr) + c110 * fr
            c01 = c001 * (1 - fr) + c101 * fr
            c11 = c011 * (1 - fr) + c111 * fr
            c0 = c00 * (1 - fg) + c10 * fg
            c1 = c01 * (1 - fg) + c11 * fg
            c = c0 * (1 - fb) + c1 * fb

            out[y0:y1] = c.reshape(y1 - y0, w, 3)

        return _join_alpha(out, alpha)


class TorchColorTransform(ColorTransform):
    """3D-texture sampling with linear filtering through torch grid_sample"""

    name = "torch"

    def __init__(self, device: Optional[str] = None, rows_per_block: int = 1024):
        if device is None:
            device = 'cuda' if torch.cuda.is_available() else 'cpu'
        if device.startswith('cuda') and not torch.cuda.is_available():
            raise RenderError(f"Requested device {device} but CUDA is not available")
        try:
            self.device = torch.device(device)
        except RuntimeError as e:
            raise RenderError(f"Could not initialize torch device {device}: {e}")
        self.rows_per_block = max(1, int(rows_per_block))
        logger.info(f"Initialized torch color transform on device: {self.device}")

    def _volume(self, lut: LUTTable) -> torch.Tensor:
        # (b, g, r, 3) -> (1, 3, D=b, H=g, W=r)
        lattice = np.ascontiguousarray(lut.lattice()[..., :3])
        volume = torch.from_numpy(lattice).to(self.device)
        return volume.permute(3, 0, 1, 2).unsqueeze(0).contiguous()

    def apply(self, image: np.ndarray, lut: LUTTable) -> np.ndarray:
        rgb, alpha = _split_alpha(image)
        h, w, _ = rgb.shape
        out = np.empty((h, w, 3), dtype=np.float32)

        try:
            volume = self._volume(lut)
            with torch.no_grad():
                for y0 in range(0, h, self.rows_per_block):
                    y1 = min(h, y0 + self.rows_per_block)
                    block = torch.from_numpy(np.ascontiguousarray(rgb[y0:y1])).to(self.device)
                    # grid (x, y, z) addresses (W, H, D) = (r, g, b)
                    grid = block.clamp(0.0, 1.0) * 2.0 - 1.0
                    grid = grid.view(1, 1, y1 - y0, w, 3)
                    sampled = F.grid_sample(volume, grid, mode='bilinear',
                                            padding_mode='border', align_corners=True)
                    out[y0:y1] = sampled[0, :, 0].permute(1, 2, 0).cpu().numpy()
        except RuntimeError as e:
            raise RenderError(f"Torch color transform failed on {self.device}: {e}")

        return _join_alpha(out, alpha)


def select_color_transform(prefer_gpu: bool = True) -> ColorTransform:
    """Pick the GPU backend when CUDA is present, otherwise the CPU reference"""
    if prefer_gpu and torch.cuda.is_available():
        return TorchColorTransform('cuda')
    logger.info("Using CPU trilinear color transform")
    return TrilinearColorTransform()
