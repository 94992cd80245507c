"""
Film Look Compositor for Film Look Pipeline

This module contains the image -> image operators layered on top of the
color transform (tone curve, bloom, halation, cross-talk, grain and light
leak) and the FilmLookCompositor class which runs them in order.
"""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

import cv2
import numpy as np

from .enums import LookStage
from .looks import (BloomParams, CrossTalkParams, FilmLook, GrainParams,
                    HalationParams, LightLeakParams, ToneCurve)

logger = logging.getLogger(__name__)

GRAIN_EPSILON = 1e-6

Operator = Callable[[np.ndarray], np.ndarray]


def luminance(image: np.ndarray) -> np.ndarray:
    """Rec.709 luma of an RGB image"""
    return (0.2126 * image[..., 0] +
            0.7152 * image[..., 1] +
            0.0722 * image[..., 2]).astype(np.float32)


def screen(base: np.ndarray, layer: np.ndarray) -> np.ndarray:
    return 1.0 - (1.0 - base) * (1.0 - layer)


def _monotone_slopes(xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    """Fritsch-Carlson tangents for a monotone cubic Hermite spline"""
    delta = np.diff(ys) / np.diff(xs)
    slopes = np.empty_like(ys)
    slopes[0] = delta[0]
    slopes[-1] = delta[-1]
    slopes[1:-1] = (delta[:-1] + delta[1:]) / 2.0
    slopes[1:-1][delta[:-1] * delta[1:] <= 0] = 0.0

    for k, d in enumerate(delta):
        if d == 0.0:
            slopes[k] = slopes[k + 1] = 0.0
            continue
        a = slopes[k] / d
        b = slopes[k + 1] / d
        s = a * a + b * b
        if s > 9.0:
            t = 3.0 / math.sqrt(s)
            slopes[k] = t * a * d
            slopes[k + 1] = t * b * d
    return slopes


def evaluate_tone_curve(curve: ToneCurve, values: np.ndarray) -> np.ndarray:
    """Evaluate the monotone spline through the curve's control points"""
    # Repeated inputs keep the last output
    knots = {}
    for x, y in curve.points:
        knots[x] = y
    xs = np.array(sorted(knots), dtype=np.float64)
    ys = np.array([knots[x] for x in xs], dtype=np.float64)

    v = np.clip(values.astype(np.float64), xs[0], xs[-1])
    if len(xs) == 1:
        return np.full(values.shape, ys[0], dtype=np.float32)

    m = _monotone_slopes(xs, ys)
    k = np.clip(np.searchsorted(xs, v, side='right') - 1, 0, len(xs) - 2)
    h = xs[k + 1] - xs[k]
    t = (v - xs[k]) / h
    t2 = t * t
    t3 = t2 * t
    out = ((2 * t3 - 3 * t2 + 1) * ys[k] +
           (t3 - 2 * t2 + t) * h * m[k] +
           (-2 * t3 + 3 * t2) * ys[k + 1] +
           (t3 - t2) * h * m[k + 1])
    return np.clip(out, 0.0, 1.0).astype(np.float32)


def apply_tone_curve(image: np.ndarray, curve: ToneCurve) -> np.ndarray:
    """Remap each channel through the curve, like CIToneCurve on RGB

    The per-channel form also steepens saturation where the curve is steep,
    which is part of the print look.
    """
    if not curve.enabled or curve.is_identity:
        return image
    return evaluate_tone_curve(curve, image)


def apply_bloom(image: np.ndarray, params: BloomParams) -> np.ndarray:
    """Blur the highlights and add them back as a soft glow"""
    if not params.enabled or params.intensity <= 0.0:
        return image

    knee = max(1.0 - params.threshold, 1e-6)
    weight = np.clip((luminance(image) - params.threshold) / knee, 0.0, 1.0)
    bright = (image * weight[..., None]).astype(np.float32)
    glow = cv2.GaussianBlur(bright, (0, 0), sigmaX=max(params.radius, 0.1))

    return np.clip(image + glow * params.intensity, 0.0, 1.0).astype(np.float32)


def apply_halation(image: np.ndarray, params: HalationParams) -> np.ndarray:
    """Red halo around bright areas, screened back at low intensity"""
    if not params.enabled or params.intensity <= 0.0:
        return image

    knee = max(1.0 - params.threshold, 1e-6)
    red = np.clip((image[..., 0] - params.threshold) / knee, 0.0, 1.0).astype(np.float32)
    halo = cv2.GaussianBlur(red, (0, 0), sigmaX=max(params.radius, 0.1))
    tint = np.asarray(params.tint, dtype=np.float32).reshape(1, 1, 3)
    layer = np.clip(halo[..., None] * tint * params.intensity, 0.0, 1.0)

    return np.clip(screen(image, layer), 0.0, 1.0).astype(np.float32)


def apply_cross_talk(image: np.ndarray, params: CrossTalkParams) -> np.ndarray:
    if not params.enabled:
        return image

    matrix = np.asarray(params.matrix, dtype=np.float32)
    bias = np.asarray(params.bias, dtype=np.float32)
    mixed = image[..., :3] @ matrix.T + bias
    return np.clip(mixed, 0.0, 1.0).astype(np.float32)


def generate_noise_field(height: int, width: int, scale: float,
                         rng: np.random.Generator) -> np.ndarray:
    """Gaussian noise in 4 planes (luma + RGB chroma) with cells of `scale` pixels"""
    nh = max(1, int(math.ceil(height / max(scale, 1.0))))
    nw = max(1, int(math.ceil(width / max(scale, 1.0))))
    noise = rng.standard_normal((nh, nw, 4)).astype(np.float32)
    if (nh, nw) != (height, width):
        noise = cv2.resize(noise, (width, height), interpolation=cv2.INTER_LINEAR)
    return noise


def shadow_mask(image: np.ndarray, contrast: float, gamma: float) -> np.ndarray:
    """Near 1.0 in shadows, near 0.0 in highlights"""
    boosted = np.clip((luminance(image) - 0.5) * contrast + 0.5, 0.0, 1.0)
    return np.power(1.0 - boosted, gamma).astype(np.float32)


def soft_light(base: np.ndarray, blend: np.ndarray) -> np.ndarray:
    """Soft-light blend, neutral where blend == 0.5"""
    return (1.0 - 2.0 * blend) * base * base + 2.0 * blend * base


def apply_grain(image: np.ndarray, params: GrainParams,
                rng: Optional[np.random.Generator] = None) -> np.ndarray:
    if not params.enabled or (params.luma <= GRAIN_EPSILON and params.chroma <= GRAIN_EPSILON):
        return image
    if rng is None:
        rng = np.random.default_rng()

    base = np.clip(image[..., :3], 0.0, 1.0).astype(np.float32)
    h, w = base.shape[:2]
    noise = generate_noise_field(h, w, params.scale, rng)

    luma_layer = noise[..., 0:1] * params.luma
    weights = np.asarray(params.chroma_weights, dtype=np.float32).reshape(1, 1, 3)
    chroma_layer = noise[..., 1:4] * params.chroma * weights

    mask = shadow_mask(base, params.mask_contrast, params.mask_gamma)
    grain = (luma_layer + chroma_layer) * mask[..., None]

    blend = np.clip(0.5 + grain, 0.0, 1.0)
    return np.clip(soft_light(base, blend), 0.0, 1.0).astype(np.float32)


@dataclass(frozen=True)
class LightLeakPlan:
    """Outcome of the single per-image light leak draw"""
    edge: str  # "left" or "right"
    center_y: float  # fraction of frame height


def plan_light_leak(params: LightLeakParams,
                    rng: np.random.Generator) -> Optional[LightLeakPlan]:
    """Roll the dice once; None means no leak for this image"""
    if not params.enabled or params.probability <= 0.0 or params.intensity <= 0.0:
        return None
    if rng.random() >= params.probability:
        return None
    edge = "left" if rng.random() < 0.5 else "right"
    return LightLeakPlan(edge=edge, center_y=float(rng.uniform(0.2, 0.8)))


def light_leak_layer(height: int, width: int, params: LightLeakParams,
                     plan: LightLeakPlan) -> np.ndarray:
    """Warm radial gradient centered on one frame edge"""
    short_side = float(min(height, width))
    inner = params.inner_radius * short_side
    outer = max(params.outer_radius * short_side, inner + 1e-6)

    cx = 0.0 if plan.edge == "left" else float(width - 1)
    cy = plan.center_y * (height - 1)
    y, x = np.ogrid[:height, :width]
    distance = np.sqrt((x - cx) ** 2 + (y - cy) ** 2)

    falloff = np.clip((outer - distance) / (outer - inner), 0.0, 1.0)
    falloff = falloff * falloff * (3.0 - 2.0 * falloff)
    color = np.asarray(params.color, dtype=np.float32).reshape(1, 1, 3)
    return (falloff[..., None] * color * params.intensity).astype(np.float32)


def apply_light_leak(image: np.ndarray, params: LightLeakParams,
                     plan: Optional[LightLeakPlan]) -> np.ndarray:
    if plan is None:
        return image
    h, w = image.shape[:2]
    layer = light_leak_layer(h, w, params, plan)
    return np.clip(screen(image, layer), 0.0, 1.0).astype(np.float32)


class FilmLookCompositor:
    """Runs the fixed six-stage film look sequence on a color-graded image"""

    def __init__(self, disabled_stages: Iterable[LookStage] = ()):
        self.disabled_stages = frozenset(disabled_stages)

    def stages(self, look: FilmLook, rng: np.random.Generator,
               leak_rng: Optional[np.random.Generator] = None) -> List[Tuple[LookStage, Operator]]:
        """Ordered list of the operators that will run for this look"""
        leak_rng = rng if leak_rng is None else leak_rng

        def light_leak(img: np.ndarray) -> np.ndarray:
            plan = plan_light_leak(look.light_leak, leak_rng)
            if plan is not None:
                logger.info(f"Light leak on {plan.edge} edge for {look.preset.value}")
            return apply_light_leak(img, look.light_leak, plan)

        chain = [
            (LookStage.TONE_CURVE, lambda img: apply_tone_curve(img, look.tone_curve)),
            (LookStage.BLOOM, lambda img: apply_bloom(img, look.bloom)),
            (LookStage.HALATION, lambda img: apply_halation(img, look.halation)),
            (LookStage.CROSS_TALK, lambda img: apply_cross_talk(img, look.cross_talk)),
            (LookStage.GRAIN, lambda img: apply_grain(img, look.grain, rng)),
            (LookStage.LIGHT_LEAK, light_leak),
        ]
        return [(stage, op) for stage, op in chain if stage not in self.disabled_stages]

    def render(self, image: np.ndarray, look: FilmLook,
               rng: Optional[np.random.Generator] = None,
               leak_rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Apply every enabled stage once; no state survives between calls"""
        if rng is None:
            rng = np.random.default_rng()

        result = image[..., :3]
        for stage, operator in self.stages(look, rng, leak_rng):
            result = operator(result)
        return result
