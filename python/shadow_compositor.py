#!/usr/bin/env python3
"""
Layered contact/cast shadow compositor

Composites a cut-out foreground onto a background with a synthesized soft
shadow driven by a virtual light (angle, elevation, intensity), optionally
bent by a depth map.

Pipeline:
1. Placement: fit the foreground into the canvas (compute_placement)
2. Silhouette: alpha > threshold (extract_silhouette)
3. Opacity: contact boost + height falloff (shape_base_opacity)
4. Per layer, back to front: shape -> depth warp -> blur -> draw (composite_layers)
5. Sharp foreground on top
"""

import json
import os
import sys
import time
from concurrent.futures import ThreadPoolExecutor

from depth_warp import prepare_depth
from layer_compositor import compute_placement, composite_layers
from layer_opacity import shape_base_opacity
from light_params import (
    DEFAULT_ANGLE, DEFAULT_ELEVATION, DEFAULT_INTENSITY,
    LightParameters, compute_drop_shadow, compute_shadow_params, drop_shadow_css
)
from raster_buffer import RasterError, base64_to_raster, encode_png, raster_to_base64
from silhouette import extract_silhouette, silhouette_coverage

SHADOW_LAYERS = 5
DEFAULT_EXPORT_NAME = "shadow-composite.png"

# Feature flags
ENABLE_DEPTH_WARP = True
PARALLEL_LAYERS = True


def synthesize_shadow_composite(foreground, background, depth=None, light=None,
                                layer_count=SHADOW_LAYERS, executor=None, is_stale=None):
    """
    Run one synthesis pass.

    Args:
        foreground: RGBA RasterBuffer of the cut-out subject
        background: RGBA RasterBuffer, defines the output size
        depth: optional RasterBuffer, depth in the red channel
        light: LightParameters (defaults when None)
        layer_count: number of shadow layers
        executor: optional executor to build layers concurrently
        is_stale: optional callable used to abandon superseded passes

    Returns:
        New RasterBuffer the size of the background, or None when the
        foreground or background is missing
    """
    if foreground is None or background is None:
        sys.stderr.write("synthesize_shadow_composite: foreground and background required, skipping pass\n")
        return None

    if light is None:
        light = LightParameters()

    params = compute_shadow_params(light, layer_count)
    placement = compute_placement(background.width, background.height, foreground.width, foreground.height)

    sys.stderr.write(
        f"synthesize_shadow_composite: canvas=({background.width}x{background.height}), "
        f"fg_box=({placement.box_width}x{placement.box_height}) at ({placement.x:.1f},{placement.y:.1f}), "
        f"angle={light.angle:.1f}, elevation={light.elevation:.1f}, intensity={light.intensity:.2f}, "
        f"dx={params['dx']:.2f}, dy={params['dy']:.2f}, depth={depth is not None}\n"
    )

    # Sub-pixel boxes cast no shadow; only the sharp foreground is drawn
    base_opacity = None
    depth_box = None
    silhouette_pixels = 0
    if not placement.is_degenerate:
        # The box-sized copy feeds the silhouette only
        scaled_fg = foreground.resized(placement.box_width, placement.box_height)
        mask = extract_silhouette(scaled_fg)
        silhouette_pixels = silhouette_coverage(mask)['pixels']
        base_opacity = shape_base_opacity(mask, light.intensity)

        if depth is not None:
            depth_box = prepare_depth(depth, background.width, background.height, placement)

    composite = composite_layers(
        background, foreground, base_opacity, params, placement,
        depth_box=depth_box, executor=executor, is_stale=is_stale,
    )

    sys.stderr.write(f"synthesize_shadow_composite complete: silhouette_pixels={silhouette_pixels}\n")
    return composite


def save_composite(raster, path=DEFAULT_EXPORT_NAME):
    """Write a composite to disk as PNG"""
    with open(path, 'wb') as f:
        f.write(encode_png(raster))
    sys.stderr.write(f"save_composite: wrote {raster.width}x{raster.height} to {path}\n")
    return path


def generate_shadow_composite(foreground_base64, background_base64, depth_base64=None, options=None):
    """
    Main entry point: composite foreground + layered shadow onto background

    Args:
        foreground_base64: Base64 encoded cut-out image (with alpha)
        background_base64: Base64 encoded background image
        depth_base64: optional Base64 encoded depth map (red channel)
        options: Dict with optional parameters:
            - angle: light angle in degrees (default: 45)
            - elevation: light elevation in degrees, 0-90 (default: 45)
            - intensity: shadow intensity, 0-1 (default: 0.7)
            - layers: number of shadow layers (default: 5)
            - depth: bool, apply the depth warp when a depth map is given
            - parallel: bool, build layers on a thread pool

    Returns:
        Dict with:
        - compositeBase64: PNG data URL (None when inputs are missing)
        - cssDropShadow: single drop-shadow approximation
        - shadowParams: offset, blur and opacity values used
        - debug: processing info
    """
    try:
        if options is None:
            options = {}

        light = LightParameters.create(
            options.get('angle', DEFAULT_ANGLE),
            options.get('elevation', DEFAULT_ELEVATION),
            options.get('intensity', DEFAULT_INTENSITY),
        )
        layer_count = max(1, int(options.get('layers', SHADOW_LAYERS)))
        css = drop_shadow_css(light)

        if not foreground_base64 or not background_base64:
            return {
                "ok": True,
                "compositeBase64": None,
                "cssDropShadow": css,
                "skipped": "foreground and background images are both required"
            }

        foreground = base64_to_raster(foreground_base64)
        background = base64_to_raster(background_base64)

        # A malformed depth map only disables the warp
        depth = None
        use_depth = ENABLE_DEPTH_WARP and options.get('depth', True)
        if depth_base64 and use_depth:
            try:
                depth = base64_to_raster(depth_base64)
            except RasterError as e:
                sys.stderr.write(f"WARNING: depth map unusable, skipping depth warp: {e}\n")

        started = time.perf_counter()
        if options.get('parallel', PARALLEL_LAYERS):
            with ThreadPoolExecutor(max_workers=min(layer_count, os.cpu_count() or 1)) as executor:
                composite = synthesize_shadow_composite(foreground, background, depth, light, layer_count, executor)
        else:
            composite = synthesize_shadow_composite(foreground, background, depth, light, layer_count)
        elapsed_ms = (time.perf_counter() - started) * 1000.0

        params = compute_shadow_params(light, layer_count)
        drop = compute_drop_shadow(light)

        return {
            "ok": True,
            "compositeBase64": raster_to_base64(composite),
            "cssDropShadow": css,
            "size": {"width": composite.width, "height": composite.height},
            "shadowParams": {
                "angle": light.angle,
                "elevation": light.elevation,
                "intensity": light.intensity,
                "dx": float(params['dx']),
                "dy": float(params['dy']),
                "layer_blur": params['layer_blur'],
                "opacity_ceiling": float(params['opacity_ceiling']),
                "blur": float(drop['blur']),
                "opacity": float(drop['opacity'])
            },
            "debug": {
                "layers": layer_count,
                "depth_warp": depth is not None,
                "elapsed_ms": round(elapsed_ms, 1)
            }
        }

    except Exception as e:
        return {
            "ok": False,
            "error": str(e)
        }


def main():
    # Read input from stdin
    input_data = json.loads(sys.stdin.read())

    result = generate_shadow_composite(
        input_data.get("foregroundImageBase64"),
        input_data.get("backgroundImageBase64"),
        input_data.get("depthImageBase64"),
        input_data.get("options", {})
    )

    # Output result
    print(json.dumps(result))


if __name__ == "__main__":
    main()
