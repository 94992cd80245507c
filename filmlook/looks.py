"""
Film Looks for Film Look Pipeline

This module contains the per-preset parameter structs consumed by the
compositor operators and the shipped look for every film stock.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Tuple

from .enums import FilmPreset

Point = Tuple[float, float]
Triple = Tuple[float, float, float]

IDENTITY_MATRIX = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 0.0, 1.0))
MAX_CROSS_TALK = 0.05


@dataclass(frozen=True)
class ToneCurve:
    """Five control points: shadow, quarter, mid, three-quarter, highlight"""
    points: Tuple[Point, Point, Point, Point, Point] = (
        (0.0, 0.0), (0.25, 0.25), (0.5, 0.5), (0.75, 0.75), (1.0, 1.0))
    enabled: bool = True

    def __post_init__(self):
        if len(self.points) != 5:
            raise ValueError(f"Tone curve needs 5 control points, got {len(self.points)}")
        for x, y in self.points:
            if not (0.0 <= x <= 1.0 and 0.0 <= y <= 1.0):
                raise ValueError(f"Tone curve point ({x}, {y}) outside [0, 1]")
        xs = [p[0] for p in self.points]
        if any(b < a for a, b in zip(xs, xs[1:])):
            raise ValueError("Tone curve inputs must be non-decreasing")

    @property
    def is_identity(self) -> bool:
        return all(x == y for x, y in self.points)


@dataclass(frozen=True)
class BloomParams:
    threshold: float = 0.75
    radius: float = 12.0  # gaussian sigma in pixels
    intensity: float = 0.0
    enabled: bool = False


@dataclass(frozen=True)
class HalationParams:
    threshold: float = 0.8
    radius: float = 18.0
    intensity: float = 0.0
    tint: Triple = (1.0, 0.25, 0.08)
    enabled: bool = False


@dataclass(frozen=True)
class CrossTalkParams:
    """3x3 dye coupling matrix plus bias, close to identity"""
    matrix: Tuple[Triple, Triple, Triple] = IDENTITY_MATRIX
    bias: Triple = (0.0, 0.0, 0.0)
    enabled: bool = False

    def __post_init__(self):
        for i, row in enumerate(self.matrix):
            for j, value in enumerate(row):
                if i != j and abs(value) > MAX_CROSS_TALK:
                    raise ValueError(
                        f"Cross-talk term [{i}][{j}]={value} exceeds {MAX_CROSS_TALK}")


@dataclass(frozen=True)
class GrainParams:
    """Grain profile; shipped looks all use the ISO 400 profile"""
    luma: float = 0.10
    chroma: float = 0.08
    chroma_weights: Triple = (1.0, 0.8, 0.6)  # R > G > B
    scale: float = 1.6  # noise cell size in pixels
    mask_contrast: float = 1.5
    mask_gamma: float = 0.75
    enabled: bool = True


@dataclass(frozen=True)
class LightLeakParams:
    probability: float = 0.08
    intensity: float = 0.35
    color: Triple = (1.0, 0.55, 0.22)
    inner_radius: float = 0.1  # fraction of the shorter frame side
    outer_radius: float = 0.8
    enabled: bool = True


@dataclass(frozen=True)
class FilmLook:
    """Complete parameter set for one preset's compositor pass"""
    preset: FilmPreset
    tone_curve: ToneCurve = field(default_factory=ToneCurve)
    bloom: BloomParams = field(default_factory=BloomParams)
    halation: HalationParams = field(default_factory=HalationParams)
    cross_talk: CrossTalkParams = field(default_factory=CrossTalkParams)
    grain: GrainParams = field(default_factory=GrainParams)
    light_leak: LightLeakParams = field(default_factory=LightLeakParams)


ISO_400_GRAIN = GrainParams()


def neutral_look(preset: FilmPreset) -> FilmLook:
    """A look whose every stage is a no-op"""
    return FilmLook(
        preset=preset,
        tone_curve=ToneCurve(),
        bloom=BloomParams(intensity=0.0),
        halation=HalationParams(intensity=0.0),
        cross_talk=CrossTalkParams(),
        grain=GrainParams(luma=0.0, chroma=0.0),
        light_leak=LightLeakParams(probability=0.0),
    )


# Bloom, halation and cross-talk carry tuned values but ship disabled
FILM_LOOKS: Dict[FilmPreset, FilmLook] = {
    FilmPreset.FUJI_C200: FilmLook(
        preset=FilmPreset.FUJI_C200,
        tone_curve=ToneCurve(((0.0, 0.03), (0.25, 0.24), (0.5, 0.51), (0.75, 0.77), (1.0, 0.97))),
        bloom=BloomParams(radius=10.0, intensity=0.12),
        halation=HalationParams(intensity=0.06),
        cross_talk=CrossTalkParams(((0.96, 0.03, 0.01), (0.02, 0.97, 0.01), (0.01, 0.04, 0.95))),
    ),
    FilmPreset.FUJI_PRO_400H: FilmLook(
        preset=FilmPreset.FUJI_PRO_400H,
        tone_curve=ToneCurve(((0.0, 0.04), (0.25, 0.26), (0.5, 0.53), (0.75, 0.79), (1.0, 0.98))),
        bloom=BloomParams(radius=13.0, intensity=0.25),
        halation=HalationParams(intensity=0.05),
        cross_talk=CrossTalkParams(((0.92, 0.05, 0.03), (0.03, 0.95, 0.02), (0.05, 0.05, 0.90))),
    ),
    FilmPreset.FUJI_PROVIA_100F: FilmLook(
        preset=FilmPreset.FUJI_PROVIA_100F,
        tone_curve=ToneCurve(((0.0, 0.0), (0.25, 0.21), (0.5, 0.5), (0.75, 0.8), (1.0, 1.0))),
        bloom=BloomParams(radius=8.0, intensity=0.08),
        halation=HalationParams(intensity=0.03),
        cross_talk=CrossTalkParams(((0.98, 0.01, 0.01), (0.01, 0.98, 0.01), (0.0, 0.02, 0.98))),
    ),
    FilmPreset.KODAK_PORTRA_400: FilmLook(
        preset=FilmPreset.KODAK_PORTRA_400,
        tone_curve=ToneCurve(((0.0, 0.03), (0.25, 0.27), (0.5, 0.52), (0.75, 0.76), (1.0, 0.94))),
        bloom=BloomParams(radius=12.0, intensity=0.15),
        halation=HalationParams(intensity=0.08),
        cross_talk=CrossTalkParams(((0.92, 0.05, 0.03), (0.02, 0.98, 0.0), (0.03, 0.05, 0.92))),
    ),
    FilmPreset.KODAK_VISION_5219: FilmLook(
        preset=FilmPreset.KODAK_VISION_5219,
        tone_curve=ToneCurve(((0.0, 0.02), (0.25, 0.22), (0.5, 0.5), (0.75, 0.8), (1.0, 0.95))),
        bloom=BloomParams(threshold=0.7, radius=16.0, intensity=0.2),
        halation=HalationParams(threshold=0.75, radius=22.0, intensity=0.14),
        cross_talk=CrossTalkParams(((0.95, 0.03, 0.02), (0.02, 0.96, 0.02), (0.01, 0.04, 0.95)),
                                   bias=(0.0, 0.0, 0.01)),
    ),
    FilmPreset.KODAK_VISION_5203: FilmLook(
        preset=FilmPreset.KODAK_VISION_5203,
        tone_curve=ToneCurve(((0.0, 0.01), (0.25, 0.23), (0.5, 0.5), (0.75, 0.78), (1.0, 0.98))),
        bloom=BloomParams(radius=9.0, intensity=0.1),
        halation=HalationParams(intensity=0.1),
        cross_talk=CrossTalkParams(((0.97, 0.02, 0.01), (0.01, 0.98, 0.01), (0.01, 0.02, 0.97))),
    ),
    FilmPreset.KODAK_5207: FilmLook(
        preset=FilmPreset.KODAK_5207,
        tone_curve=ToneCurve(((0.0, 0.02), (0.25, 0.24), (0.5, 0.51), (0.75, 0.77), (1.0, 0.96))),
        bloom=BloomParams(radius=11.0, intensity=0.12),
        halation=HalationParams(intensity=0.12),
        cross_talk=CrossTalkParams(((0.96, 0.03, 0.01), (0.02, 0.97, 0.01), (0.01, 0.03, 0.96))),
    ),
    FilmPreset.HARMAN_PHOENIX_200: FilmLook(
        preset=FilmPreset.HARMAN_PHOENIX_200,
        tone_curve=ToneCurve(((0.0, 0.0), (0.25, 0.19), (0.5, 0.49), (0.75, 0.82), (1.0, 1.0))),
        bloom=BloomParams(radius=14.0, intensity=0.18),
        halation=HalationParams(threshold=0.7, radius=24.0, intensity=0.2, tint=(1.0, 0.35, 0.12)),
        cross_talk=CrossTalkParams(((0.94, 0.04, 0.02), (0.03, 0.94, 0.03), (0.02, 0.05, 0.93))),
    ),
}


def look_for(preset: FilmPreset, light_leak_probability: Optional[float] = None) -> FilmLook:
    """Shipped look for a preset, optionally overriding the light leak probability"""
    look = FILM_LOOKS[preset]
    if light_leak_probability is not None:
        look = replace(look, light_leak=replace(look.light_leak, probability=light_leak_probability))
    return look
