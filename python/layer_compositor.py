#!/usr/bin/env python3
"""
Layer compositing: placement of the foreground on the canvas, separable
Gaussian blur, and back-to-front alpha-over of the shadow layers followed
by the sharp foreground.

All drawing happens in premultiplied float32 (RGB 0-255, alpha 0-1).
"""

import sys
from math import ceil
from typing import NamedTuple

import cv2
import numpy as np

from depth_warp import warp_layer
from layer_opacity import shape_layer
from raster_buffer import RasterBuffer, RasterError

FIT_RATIO = 0.6       # foreground fits into 60% of the limiting canvas side
BOTTOM_MARGIN = 50    # px between the foreground box and the canvas bottom


class PassSuperseded(Exception):
    """A newer synthesis pass was requested; this one's result is stale"""


class Placement(NamedTuple):
    scale: float
    width: float
    height: float
    x: float
    y: float
    box_width: int
    box_height: int

    @property
    def is_degenerate(self):
        return self.box_width <= 0 or self.box_height <= 0


def compute_placement(bg_width, bg_height, fg_width, fg_height,
                      fit_ratio=FIT_RATIO, bottom_margin=BOTTOM_MARGIN):
    """
    Fit the foreground into the canvas: centered horizontally, anchored
    bottom_margin px above the bottom edge.

    The pixel box is the truncated float size and may be 0 px on a side
    for very thin subjects; such a box casts no shadow (is_degenerate).
    """
    if min(bg_width, bg_height, fg_width, fg_height) <= 0:
        raise RasterError(
            f"Cannot place {fg_width}x{fg_height} foreground on {bg_width}x{bg_height} background"
        )

    scale = min(bg_width / fg_width, bg_height / fg_height) * fit_ratio
    width = fg_width * scale
    height = fg_height * scale
    box_width, box_height = int(width), int(height)

    return Placement(
        scale=scale, width=width, height=height,
        x=(bg_width - width) / 2,
        y=bg_height - height - bottom_margin,
        box_width=box_width, box_height=box_height,
    )


def blur_margin(sigma):
    return int(ceil(3 * sigma))


def gaussian_blur(premul, sigma):
    """
    Separable Gaussian blur of a premultiplied RGBA array.

    The array is padded by 3 sigma on every side first so the blur spreads
    past the layer's box. Returns (blurred, pad).
    """
    if sigma <= 0:
        return premul.copy(), 0

    pad = blur_margin(sigma)
    padded = np.pad(premul, ((pad, pad), (pad, pad), (0, 0)), mode='constant')
    kernel = cv2.getGaussianKernel(2 * pad + 1, sigma, cv2.CV_32F)
    blurred = cv2.sepFilter2D(padded, cv2.CV_32F, kernel, kernel, borderType=cv2.BORDER_CONSTANT)
    return blurred, pad


def draw_over(canvas, premul, x, y):
    """
    Alpha-over a premultiplied array onto the canvas (in place) with its
    top-left at (x, y); fractional positions are resampled bilinearly and
    anything outside the canvas is clipped.
    """
    h, w = canvas.shape[:2]
    M = np.float32([[1, 0, x], [0, 1, y]])
    shifted = cv2.warpAffine(
        premul, M, (w, h),
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=(0, 0, 0, 0),
    )
    return alpha_over(canvas, shifted)


def alpha_over(canvas, src):
    """Premultiplied source-over of a canvas-sized array, in place"""
    canvas *= 1.0 - src[:, :, 3:4]
    canvas += src
    return canvas


def _coverage(start, length, count):
    """Fraction of each of `count` unit pixels covered by [start, start + length)"""
    edges = np.arange(count, dtype=np.float64)
    covered = np.minimum(edges + 1, start + length) - np.maximum(edges, start)
    return np.clip(covered, 0.0, 1.0).astype(np.float32)


def draw_scaled(canvas, premul, x, y, width, height):
    """
    Alpha-over a premultiplied array scaled to width x height (floats) at
    (x, y), like drawImage with a destination rectangle.

    Samples are bilinear on pixel centers with edge clamping; the rectangle
    edges are anti-aliased by exact pixel coverage.
    """
    h, w = canvas.shape[:2]
    if width <= 0 or height <= 0:
        return canvas

    src = premul
    # Pre-shrink with an area filter so large reductions do not alias
    if width < src.shape[1] or height < src.shape[0]:
        target = (max(1, int(ceil(width))), max(1, int(ceil(height))))
        src = cv2.resize(src, target, interpolation=cv2.INTER_AREA)

    sx = width / src.shape[1]
    sy = height / src.shape[0]
    M = np.float32([
        [sx, 0, x + 0.5 * (sx - 1)],
        [0, sy, y + 0.5 * (sy - 1)],
    ])
    sampled = cv2.warpAffine(src, M, (w, h), flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)

    coverage = _coverage(y, height, h)[:, None] * _coverage(x, width, w)[None, :]
    sampled *= coverage[:, :, None]
    return alpha_over(canvas, sampled)


def build_layer(base_opacity, layer_index, params, depth_box=None):
    """
    Shape, warp (when a depth box is given) and blur one shadow layer.

    Returns (blurred premultiplied array, pad).
    """
    layer = shape_layer(base_opacity, layer_index)
    if depth_box is not None:
        layer = warp_layer(layer, depth_box, params['dx'], params['dy'])

    return gaussian_blur(layer.premultiplied(), params['layer_blur'][layer_index])


def composite_layers(background, foreground, base_opacity, params, placement,
                     depth_box=None, executor=None, is_stale=None):
    """
    Render the final composite.

    Args:
        background: RasterBuffer, defines the canvas size
        foreground: source foreground RasterBuffer (any size); drawn at the
            placement's fractional width x height
        base_opacity: per-pixel base shadow opacity for the placement box,
            or None for a degenerate box (no layers are drawn)
        params: dict from light_params.compute_shadow_params()
        placement: Placement of the foreground box
        depth_box: optional depth RasterBuffer cropped to the box
        executor: optional concurrent.futures executor to build layers on
        is_stale: optional callable; when it returns True the pass aborts
            with PassSuperseded before the next draw

    Returns:
        New RasterBuffer the size of the background
    """
    if placement.is_degenerate or base_opacity is None:
        sys.stderr.write(
            f"composite_layers: foreground box {placement.width:.2f}x{placement.height:.2f} "
            f"is under 1 px, shadow layers are transparent\n"
        )
        order = []
    else:
        if base_opacity.shape != (placement.box_height, placement.box_width):
            raise RasterError(
                f"Opacity map {base_opacity.shape[1]}x{base_opacity.shape[0]} does not match placement box "
                f"{placement.box_width}x{placement.box_height}"
            )
        order = list(range(params['layer_count'] - 1, -1, -1))

    # Layers are independent until drawing; only the draw loop is ordered
    futures = {}
    if executor is not None:
        futures = {i: executor.submit(build_layer, base_opacity, i, params, depth_box) for i in order}

    canvas = background.premultiplied()

    try:
        for i in order:
            if is_stale is not None and is_stale():
                raise PassSuperseded(f"pass superseded before layer {i}")

            if futures:
                blurred, pad = futures[i].result()
            else:
                blurred, pad = build_layer(base_opacity, i, params, depth_box)
            off_x, off_y = params['layer_offsets'][i]
            draw_over(canvas, blurred, placement.x + off_x - pad, placement.y + off_y - pad)
            sys.stderr.write(
                f"composite_layers: layer={i}, blur={params['layer_blur'][i]}, "
                f"pos=({placement.x + off_x:.1f},{placement.y + off_y:.1f})\n"
            )
    finally:
        for future in futures.values():
            future.cancel()

    draw_scaled(canvas, foreground.premultiplied(), placement.x, placement.y, placement.width, placement.height)
    return RasterBuffer.from_premultiplied(canvas)
