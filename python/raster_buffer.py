#!/usr/bin/env python3
"""
RGBA8 raster buffer shared by every stage of the shadow compositor.

Pixels are kept in RGBA order (not OpenCV's BGRA); conversion happens only
at the PNG encode boundary.
"""

import base64
import binascii
from io import BytesIO

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError


class RasterError(ValueError):
    """Malformed raster input (zero size, bad bytes, mismatched dimensions)"""


class RasterBuffer:
    """
    Owned W x H grid of RGBA8 samples, row-major.

    `pixels` is a uint8 array of shape (height, width, 4); its size is
    always width * height * 4.
    """

    def __init__(self, width, height, pixels=None):
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise RasterError(f"Raster dimensions must be positive, got {width}x{height}")

        if pixels is None:
            pixels = np.zeros((height, width, 4), dtype=np.uint8)
        else:
            pixels = np.ascontiguousarray(pixels, dtype=np.uint8)
            if pixels.shape != (height, width, 4):
                raise RasterError(
                    f"Pixel array shape {pixels.shape} does not match {width}x{height} RGBA"
                )

        self.width = width
        self.height = height
        self.pixels = pixels

    @classmethod
    def from_array(cls, array):
        """Wrap a grey, RGB or RGBA array (RGB gets an opaque alpha channel)"""
        array = np.asarray(array)
        if array.ndim == 2:
            array = np.dstack([array, array, array])

        if array.ndim != 3 or array.shape[2] not in (3, 4):
            raise RasterError(f"Unsupported pixel array shape {array.shape}")

        if array.shape[2] == 3:
            alpha = np.full((array.shape[0], array.shape[1], 1), 255, dtype=np.uint8)
            array = np.concatenate([array.astype(np.uint8), alpha], axis=2)

        h, w = array.shape[:2]
        return cls(w, h, array)

    @classmethod
    def filled(cls, width, height, rgba):
        raster = cls(width, height)
        raster.pixels[:, :] = rgba
        return raster

    @property
    def size(self):
        return self.width, self.height

    @property
    def alpha(self):
        return self.pixels[:, :, 3]

    @property
    def red(self):
        return self.pixels[:, :, 0]

    def pixel(self, x, y):
        """Return the (r, g, b, a) sample at column x, row y"""
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise RasterError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} raster")
        return tuple(int(v) for v in self.pixels[y, x])

    def copy(self):
        return RasterBuffer(self.width, self.height, self.pixels.copy())

    def resized(self, width, height):
        """Return a resampled copy (area filter when shrinking, bilinear when growing)"""
        width, height = int(width), int(height)
        if width <= 0 or height <= 0:
            raise RasterError(f"Cannot resize raster to {width}x{height}")
        if (width, height) == self.size:
            return self.copy()

        shrinking = width * height < self.width * self.height
        interpolation = cv2.INTER_AREA if shrinking else cv2.INTER_LINEAR
        resized = cv2.resize(self.pixels, (width, height), interpolation=interpolation)
        return RasterBuffer(width, height, resized)

    def crop(self, x, y, width, height):
        """
        Copy the rectangle at (x, y) of the given size.

        Parts of the rectangle outside the raster read as transparent black.
        """
        out = RasterBuffer(width, height)

        src_x0, src_y0 = max(0, x), max(0, y)
        src_x1, src_y1 = min(self.width, x + width), min(self.height, y + height)
        if src_x1 > src_x0 and src_y1 > src_y0:
            dst_x0, dst_y0 = src_x0 - x, src_y0 - y
            out.pixels[dst_y0:dst_y0 + (src_y1 - src_y0), dst_x0:dst_x0 + (src_x1 - src_x0)] = \
                self.pixels[src_y0:src_y1, src_x0:src_x1]
        return out

    def premultiplied(self):
        """float32 copy with RGB scaled by alpha; RGB in 0-255, alpha in 0-1"""
        arr = self.pixels.astype(np.float32)
        alpha = arr[:, :, 3:4] / 255.0
        arr[:, :, :3] *= alpha
        arr[:, :, 3:4] = alpha
        return arr

    @classmethod
    def from_premultiplied(cls, arr):
        """Inverse of premultiplied(), rounding to the nearest 8-bit value"""
        alpha = np.clip(arr[:, :, 3:4], 0.0, 1.0)
        safe = np.where(alpha > 0, alpha, 1.0)
        rgb = np.where(alpha > 0, arr[:, :, :3] / safe, 0.0)

        out = np.empty(arr.shape[:2] + (4,), dtype=np.uint8)
        out[:, :, :3] = np.clip(np.rint(rgb), 0, 255)
        out[:, :, 3] = np.clip(np.rint(alpha[:, :, 0] * 255.0), 0, 255)
        h, w = arr.shape[:2]
        return cls(w, h, out)

    def __eq__(self, other):
        if not isinstance(other, RasterBuffer):
            return NotImplemented
        return self.size == other.size and np.array_equal(self.pixels, other.pixels)

    def __repr__(self):
        return f"RasterBuffer({self.width}x{self.height})"


def decode_image(data):
    """Decode PNG/JPEG/WebP/... bytes into an RGBA RasterBuffer"""
    try:
        image = Image.open(BytesIO(data))
        image = image.convert("RGBA")
    except (UnidentifiedImageError, OSError) as e:
        raise RasterError(f"Could not decode image: {e}") from e

    return RasterBuffer.from_array(np.array(image))


def base64_to_raster(base64_string):
    """Decode a base64 string (plain or data URL) into a RasterBuffer"""
    if base64_string.startswith('data:image'):
        base64_string = base64_string.split(',', 1)[1]

    try:
        image_data = base64.b64decode(base64_string)
    except (binascii.Error, ValueError) as e:
        raise RasterError(f"Invalid base64 image data: {e}") from e

    return decode_image(image_data)


def encode_png(raster):
    """Encode a RasterBuffer as PNG bytes"""
    bgra = cv2.cvtColor(raster.pixels, cv2.COLOR_RGBA2BGRA)
    ok, buffer = cv2.imencode('.png', bgra)
    if not ok:
        raise RasterError(f"PNG encoding failed for {raster!r}")
    return buffer.tobytes()


def raster_to_base64(raster):
    """Encode a RasterBuffer as a PNG data URL"""
    image_base64 = base64.b64encode(encode_png(raster)).decode('utf-8')
    return f"data:image/png;base64,{image_base64}"
