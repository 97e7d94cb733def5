#!/usr/bin/env python3
"""
Light parameter mapping: virtual light (angle, elevation, intensity) to the
offsets, blur radii and opacity factors used by the shadow layers.
"""

from math import cos, sin, radians
from typing import NamedTuple

DEFAULT_ANGLE = 45
DEFAULT_ELEVATION = 45
DEFAULT_INTENSITY = 0.7

# Per-layer shaping constants
LAYER_FADE = 0.15       # opacity lost per layer index
LAYER_SPREAD = 0.2      # extra offset per layer index, as a fraction of the base offset
LAYER_BLUR_STEP = 3
LAYER_BLUR_BASE = 2
CONTACT_BOOST = 0.4


class LightParameters(NamedTuple):
    """Virtual light; use create() to get wrapped/clamped values"""
    angle: float = DEFAULT_ANGLE
    elevation: float = DEFAULT_ELEVATION
    intensity: float = DEFAULT_INTENSITY

    @classmethod
    def create(cls, angle=DEFAULT_ANGLE, elevation=DEFAULT_ELEVATION, intensity=DEFAULT_INTENSITY):
        """
        Normalize raw slider values:
        angle wraps to [0, 360), elevation clamps to [0, 90], intensity to [0, 1]
        """
        return cls(
            angle=float(angle) % 360,
            elevation=max(0.0, min(90.0, float(elevation))),
            intensity=max(0.0, min(1.0, float(intensity))),
        )


def base_distance(elevation):
    """Shadow offset length in pixels; 0 with the light straight overhead"""
    return (90 - elevation) * 2


def layer_blur_radius(layer_index):
    """Gaussian sigma (px) for a layer, strictly increasing with the index"""
    return layer_index * LAYER_BLUR_STEP + LAYER_BLUR_BASE


def layer_opacity_factor(layer_index):
    return 1 - layer_index * LAYER_FADE


def compute_shadow_params(light, layer_count=5):
    """
    Compute the per-pass shadow parameters from a LightParameters.

    Returns:
        Dict with dx/dy (base offset), base_distance, and per-layer lists
        layer_blur, layer_offsets, layer_factors, plus opacity_ceiling
        (the highest alpha fraction any layer can reach)
    """
    distance = base_distance(light.elevation)
    rad = radians(light.angle)
    dx = cos(rad) * distance
    dy = sin(rad) * distance

    layer_offsets = [
        (dx + i * dx * LAYER_SPREAD, dy + i * dy * LAYER_SPREAD)
        for i in range(layer_count)
    ]

    if light.intensity > 0:
        opacity_ceiling = min(1.0, light.intensity + CONTACT_BOOST)
    else:
        opacity_ceiling = 0.0

    return dict(
        dx=dx, dy=dy,
        base_distance=distance,
        layer_count=layer_count,
        layer_blur=[layer_blur_radius(i) for i in range(layer_count)],
        layer_offsets=layer_offsets,
        layer_factors=[layer_opacity_factor(i) for i in range(layer_count)],
        opacity_ceiling=opacity_ceiling,
        intensity=light.intensity,
        angle=light.angle,
        elevation=light.elevation,
    )


def compute_drop_shadow(light):
    """Single-shadow approximation of the layered shadow (descriptive only)"""
    distance = base_distance(light.elevation)
    rad = radians(light.angle)
    return dict(
        dx=cos(rad) * distance,
        dy=sin(rad) * distance,
        blur=max(2, (90 - light.elevation) * 0.3),
        opacity=min(1, light.intensity * (1 - light.elevation / 180)),
    )


def drop_shadow_css(light):
    """CSS filter declaration describing the approximate shadow"""
    s = compute_drop_shadow(light)
    return (
        f"filter: drop-shadow({s['dx']:.1f}px {s['dy']:.1f}px {s['blur']:.1f}px "
        f"rgba(0, 0, 0, {s['opacity']:.2f}));"
    )
