#!/usr/bin/env python3
"""
Layer opacity shaping.

Two-term model per subject pixel, by distance from the bottom of the
subject's box:
- exponential falloff with height (dominant cast-shadow density)
- linear contact boost over the bottom 30% (ground contact darkening)
Each successive layer is proportionally fainter.
"""

import numpy as np

from light_params import CONTACT_BOOST, layer_opacity_factor
from raster_buffer import RasterBuffer

CONTACT_BAND = 0.3      # fraction of height that receives the contact boost
FALLOFF_SCALE = 0.5     # exp falloff length, as a fraction of height


def shape_base_opacity(mask, intensity):
    """
    Base shadow opacity (0-1 float32) for every pixel of a silhouette mask.

    Zero outside the mask, for an empty/zero-height mask, and when intensity
    is 0 (shadow disabled, contact boost included).
    """
    h, w = mask.shape[:2]
    base = np.zeros((h, w), dtype=np.float32)
    if h == 0 or w == 0 or intensity <= 0:
        return base

    # distanceFromBottom = h - y, y = 0 at the top row
    distance = h - np.arange(h, dtype=np.float64)
    contact = np.maximum(0.0, 1.0 - distance / (h * CONTACT_BAND))
    falloff = np.exp(-distance / (h * FALLOFF_SCALE))

    row_opacity = intensity * falloff
    boosted = contact > 0
    row_opacity[boosted] = np.minimum(1.0, row_opacity[boosted] + contact[boosted] * CONTACT_BOOST)

    base[:] = row_opacity[:, None].astype(np.float32)
    base[~mask] = 0.0
    return base


def shape_layer(base_opacity, layer_index):
    """Black RGBA layer raster with alpha = base opacity x layer factor"""
    h, w = base_opacity.shape
    layer = RasterBuffer(w, h)
    opacity = base_opacity.astype(np.float64) * layer_opacity_factor(layer_index)
    layer.pixels[:, :, 3] = np.clip(np.rint(opacity * 255.0), 0, 255).astype(np.uint8)
    return layer


def shape_layers(mask, intensity, layer_count=5):
    """All layer rasters for a silhouette, index 0 (densest) first"""
    base = shape_base_opacity(mask, intensity)
    return [shape_layer(base, i) for i in range(layer_count)]
