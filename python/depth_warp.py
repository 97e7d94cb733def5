#!/usr/bin/env python3
"""
Depth-driven parallax warp for shadow layers.

Depth is read from the red channel (0-255). Every destination pixel copies
the layer sample at its displaced, floored coordinate; displaced
coordinates outside the layer leave the destination transparent. No
interpolation or hole filling is done, so large offsets can leave gaps.
"""

import sys

import numpy as np

from raster_buffer import RasterBuffer, RasterError

WARP_STRENGTH = 0.5


def prepare_depth(depth, canvas_width, canvas_height, placement):
    """
    Stretch a depth raster over the canvas and crop the foreground box.

    Returns a RasterBuffer of placement.box_width x placement.box_height;
    box areas outside the canvas read as depth 0. The origin truncates
    toward zero, like getImageData on fractional coordinates.
    """
    stretched = depth.resized(canvas_width, canvas_height)
    return stretched.crop(
        int(placement.x), int(placement.y),
        placement.box_width, placement.box_height,
    )


def warp_layer(layer, depth, dx, dy, strength=WARP_STRENGTH):
    """
    Displace a layer by (dx, dy) x depth x strength.

    Args:
        layer: shadow layer RasterBuffer
        depth: depth RasterBuffer of exactly the layer's size
        dx, dy: light offset vector in pixels

    Returns:
        New RasterBuffer of the layer's size
    """
    if depth.size != layer.size:
        raise RasterError(
            f"Depth raster {depth.width}x{depth.height} does not match layer "
            f"{layer.width}x{layer.height}; resample the depth map first"
        )

    h, w = layer.height, layer.width
    d = depth.red.astype(np.float64) / 255.0

    ys, xs = np.mgrid[0:h, 0:w].astype(np.float64)
    src_x = xs + dx * d * strength
    src_y = ys + dy * d * strength

    inside = (src_x >= 0) & (src_x < w) & (src_y >= 0) & (src_y < h)

    warped = RasterBuffer(w, h)
    sx = np.floor(src_x[inside]).astype(np.intp)
    sy = np.floor(src_y[inside]).astype(np.intp)
    warped.pixels[inside] = layer.pixels[sy, sx]

    dropped = inside.size - int(np.count_nonzero(inside))
    if dropped:
        sys.stderr.write(f"warp_layer: {dropped} pixels sampled outside the layer, left transparent\n")

    return warped
