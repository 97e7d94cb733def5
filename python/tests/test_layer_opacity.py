#!/usr/bin/env python3
"""
Silhouette extraction and layer opacity shaping tests
"""

import os
import sys

import cv2
import numpy as np

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from layer_opacity import shape_base_opacity, shape_layer, shape_layers
from raster_buffer import RasterBuffer
from silhouette import extract_silhouette, silhouette_coverage


def create_test_mask():
    """Rectangle body with a circular head, like a simple standing subject"""
    mask = np.zeros((200, 120), dtype=np.uint8)
    cv2.rectangle(mask, (30, 80), (90, 199), 255, -1)
    cv2.circle(mask, (60, 50), 30, 255, -1)
    return mask


def raster_from_alpha(alpha):
    h, w = alpha.shape
    pixels = np.zeros((h, w, 4), dtype=np.uint8)
    pixels[:, :, 3] = alpha
    return RasterBuffer(w, h, pixels)


def test_threshold_excludes_low_alpha():
    # alpha 0..255 across the columns
    alpha = np.tile(np.arange(256, dtype=np.uint8), (4, 1))
    mask = extract_silhouette(raster_from_alpha(alpha))

    assert not mask[:, :11].any()
    assert mask[:, 11:].all()


def test_low_alpha_casts_no_shadow_in_any_layer():
    alpha = np.full((50, 50), 10, dtype=np.uint8)
    alpha[:, 25:] = 3
    mask = extract_silhouette(raster_from_alpha(alpha))

    for layer in shape_layers(mask, intensity=1.0, layer_count=5):
        assert not layer.alpha.any()


def test_layers_are_black():
    mask = create_test_mask() > 0
    for layer in shape_layers(mask, intensity=0.7):
        assert not layer.pixels[:, :, :3].any()


def test_layer_opacity_non_increasing_with_index():
    mask = create_test_mask() > 0
    layers = shape_layers(mask, intensity=0.7, layer_count=5)

    for nearer, farther in zip(layers, layers[1:]):
        assert (nearer.alpha.astype(int) >= farther.alpha.astype(int)).all()


def test_bottom_rows_darker_than_top():
    mask = np.ones((100, 100), dtype=bool)
    layer = shape_layers(mask, intensity=0.7)[0]

    assert layer.alpha[99].mean() > layer.alpha[0].mean()
    assert layer.alpha[90].mean() > layer.alpha[50].mean()


def test_concrete_opacity_values():
    mask = np.ones((100, 100), dtype=bool)
    base = shape_base_opacity(mask, 0.7)

    # bottom row: distance 1, contact boost saturates to full opacity
    assert shape_layer(base, 0).alpha[99, 0] == 255
    assert shape_layer(base, 4).alpha[99, 0] == 102
    # top row: distance 100, no contact boost, 0.7 * exp(-2)
    assert shape_layer(base, 0).alpha[0, 0] == 24


def test_zero_intensity_disables_shadow():
    mask = create_test_mask() > 0
    assert not shape_base_opacity(mask, 0.0).any()
    for layer in shape_layers(mask, intensity=0.0):
        assert not layer.alpha.any()


def test_silhouette_coverage():
    mask = create_test_mask() > 0
    coverage = silhouette_coverage(mask)
    assert coverage['pixels'] == int(mask.sum())
    assert coverage['top'] == 20
    assert coverage['bottom'] == 199

    empty = silhouette_coverage(np.zeros((10, 10), dtype=bool))
    assert empty == dict(pixels=0, top=None, bottom=None)
