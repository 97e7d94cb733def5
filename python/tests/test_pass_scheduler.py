#!/usr/bin/env python3
"""
Pass scheduling tests: the newest submitted pass is the one committed
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from light_params import LightParameters
from pass_scheduler import ShadowPassScheduler
from raster_buffer import RasterBuffer
from shadow_compositor import synthesize_shadow_composite


def create_scene():
    foreground = RasterBuffer.filled(80, 60, (20, 40, 60, 255))
    background = RasterBuffer.filled(160, 120, (255, 255, 255, 255))
    return foreground, background


def test_single_pass_commits():
    foreground, background = create_scene()
    light = LightParameters.create(90, 30, 0.7)

    with ShadowPassScheduler() as scheduler:
        composite = scheduler.submit(foreground, background, light=light).result()
        committed, generation = scheduler.latest()

    assert composite is not None
    assert committed is composite
    assert generation == 1
    assert composite == synthesize_shadow_composite(foreground, background, light=light)


def test_latest_submission_wins():
    foreground, background = create_scene()
    lights = [LightParameters.create(angle, 40, 0.7) for angle in (0, 90, 180, 270)]

    with ShadowPassScheduler() as scheduler:
        futures = [scheduler.submit(foreground, background, light=light) for light in lights]
        final = futures[-1].result()
        committed, generation = scheduler.latest()

    assert generation == len(lights)
    assert committed is final
    assert final == synthesize_shadow_composite(foreground, background, light=lights[-1])


def test_stale_generation_is_not_committed():
    foreground, background = create_scene()

    with ShadowPassScheduler(layer_workers=0) as scheduler:
        scheduler.generation = 5
        result = scheduler._run(4, foreground, background, None, LightParameters(), 5)
        committed, generation = scheduler.latest()

    assert result is None
    assert committed is None
    assert generation == 0


def test_missing_inputs_commit_nothing():
    _, background = create_scene()

    with ShadowPassScheduler(layer_workers=0) as scheduler:
        assert scheduler.submit(None, background).result() is None
        assert scheduler.latest() == (None, 0)
