#!/usr/bin/env python3
"""
RasterBuffer construction, access and codec tests
"""

import base64
import os
import sys

import cv2
import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from raster_buffer import (
    RasterBuffer, RasterError, base64_to_raster, decode_image, encode_png, raster_to_base64
)


def create_test_raster():
    """Opaque red rectangle on a transparent 40x30 raster"""
    pixels = np.zeros((30, 40, 4), dtype=np.uint8)
    cv2.rectangle(pixels, (10, 5), (29, 24), (255, 0, 0, 255), -1)
    return RasterBuffer(40, 30, pixels)


def test_rejects_zero_dimensions():
    with pytest.raises(RasterError):
        RasterBuffer(0, 10)
    with pytest.raises(RasterError):
        RasterBuffer(10, 0)


def test_rejects_mismatched_pixel_array():
    with pytest.raises(RasterError):
        RasterBuffer(10, 10, np.zeros((10, 11, 4), dtype=np.uint8))


def test_new_raster_is_transparent():
    raster = RasterBuffer(7, 3)
    assert raster.pixels.shape == (3, 7, 4)
    assert raster.pixels.size == 7 * 3 * 4
    assert not raster.pixels.any()


def test_from_array_adds_opaque_alpha_to_rgb():
    rgb = np.full((4, 5, 3), 9, dtype=np.uint8)
    raster = RasterBuffer.from_array(rgb)
    assert raster.size == (5, 4)
    assert (raster.alpha == 255).all()
    assert raster.pixel(0, 0) == (9, 9, 9, 255)


def test_pixel_access_is_bounds_checked():
    raster = create_test_raster()
    assert raster.pixel(10, 5) == (255, 0, 0, 255)
    assert raster.pixel(0, 0) == (0, 0, 0, 0)
    with pytest.raises(RasterError):
        raster.pixel(40, 0)
    with pytest.raises(RasterError):
        raster.pixel(-1, 0)


def test_crop_outside_reads_transparent():
    raster = RasterBuffer.filled(10, 10, (1, 2, 3, 255))
    cropped = raster.crop(-5, 5, 10, 10)

    assert cropped.size == (10, 10)
    # left half and bottom half fall outside the source
    assert not cropped.pixels[:, :5].any()
    assert not cropped.pixels[5:, :].any()
    assert (cropped.pixels[:5, 5:] == (1, 2, 3, 255)).all()


def test_premultiplied_round_trip():
    raster = RasterBuffer.filled(3, 3, (200, 100, 50, 128))
    restored = RasterBuffer.from_premultiplied(raster.premultiplied())
    assert restored == raster


def test_fully_transparent_unpremultiplies_to_zero():
    raster = RasterBuffer.filled(2, 2, (200, 100, 50, 0))
    restored = RasterBuffer.from_premultiplied(raster.premultiplied())
    assert not restored.pixels.any()


def test_png_encode_decode_preserves_pixels():
    raster = create_test_raster()
    decoded = decode_image(encode_png(raster))
    assert decoded == raster


def test_base64_data_url_round_trip():
    raster = create_test_raster()
    data_url = raster_to_base64(raster)
    assert data_url.startswith("data:image/png;base64,")
    assert base64_to_raster(data_url) == raster


def test_undecodable_bytes_raise_raster_error():
    with pytest.raises(RasterError):
        decode_image(b"not an image")
    with pytest.raises(RasterError):
        base64_to_raster(base64.b64encode(b"still not an image").decode())
