"""
Enums for Film Look Pipeline

This module contains enumeration classes that define the film stocks the
pipeline can emulate and the stages of the film look compositor.
"""

from enum import Enum


class FilmPreset(Enum):
    """Enumeration of emulated film stocks"""
    FUJI_C200 = "fujiC200"
    FUJI_PRO_400H = "fujiPro400H"
    FUJI_PROVIA_100F = "fujiProvia100F"
    KODAK_PORTRA_400 = "kodakPortra400"
    KODAK_VISION_5219 = "kodakVision5219"  # Vision3 500T
    KODAK_VISION_5203 = "kodakVision5203"  # Vision3 50D
    KODAK_5207 = "kodak5207"  # 250D, resource has no Vision prefix
    HARMAN_PHOENIX_200 = "harmanPhoenix200"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def iso(self) -> float:
        """Nominal sensitivity of the stock"""
        return _ISO[self]

    @property
    def lut_resource_name(self) -> str:
        """Name of the .cube resource, without extension"""
        return self.value[0].upper() + self.value[1:]

    @classmethod
    def from_name(cls, name: str) -> "FilmPreset":
        """Look up a preset by identifier, member name or display name"""
        for preset in cls:
            if name in (preset.value, preset.name, preset.display_name):
                return preset
        raise ValueError(f"Unknown film preset: {name}")


_DISPLAY_NAMES = {
    FilmPreset.FUJI_C200: "Fuji C200",
    FilmPreset.FUJI_PRO_400H: "Fuji Pro 400H",
    FilmPreset.FUJI_PROVIA_100F: "Fuji Provia 100F",
    FilmPreset.KODAK_PORTRA_400: "Kodak Portra 400",
    FilmPreset.KODAK_VISION_5219: "Kodak Vision3 500T (5219)",
    FilmPreset.KODAK_VISION_5203: "Kodak Vision3 50D (5203)",
    FilmPreset.KODAK_5207: "Kodak 250D (5207)",
    FilmPreset.HARMAN_PHOENIX_200: "Harman Phoenix 200",
}

_ISO = {
    FilmPreset.FUJI_C200: 200.0,
    FilmPreset.FUJI_PRO_400H: 400.0,
    FilmPreset.FUJI_PROVIA_100F: 100.0,
    FilmPreset.KODAK_PORTRA_400: 400.0,
    FilmPreset.KODAK_VISION_5219: 500.0,
    FilmPreset.KODAK_VISION_5203: 50.0,
    FilmPreset.KODAK_5207: 250.0,
    FilmPreset.HARMAN_PHOENIX_200: 200.0,
}


class LookStage(Enum):
    """Enumeration of compositor stages, in processing order"""
    TONE_CURVE = "tone_curve"
    BLOOM = "bloom"
    HALATION = "halation"
    CROSS_TALK = "cross_talk"
    GRAIN = "grain"
    LIGHT_LEAK = "light_leak"
