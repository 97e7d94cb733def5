#!/usr/bin/env python3
"""
Background scheduling of synthesis passes where the newest request wins.

Each submit() bumps a generation counter. Older passes that have not
started are cancelled; a running one notices between layers and stops.
Only a pass that is still the newest when it finishes is committed.
"""

import os
import sys
import threading
from concurrent.futures import ThreadPoolExecutor

from layer_compositor import PassSuperseded
from shadow_compositor import SHADOW_LAYERS, synthesize_shadow_composite


class ShadowPassScheduler:
    """Runs one pass at a time on a worker thread; layers on a shared pool"""

    def __init__(self, layer_workers=None):
        self.lock = threading.Lock()
        self.generation = 0
        self.committed = None
        self.committed_generation = 0
        self.pending = None

        self.runner = ThreadPoolExecutor(max_workers=1, thread_name_prefix="shadow-pass")
        workers = layer_workers if layer_workers is not None else min(SHADOW_LAYERS, os.cpu_count() or 1)
        self.layer_pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="shadow-layer") if workers > 0 else None

    def submit(self, foreground, background, depth=None, light=None, layer_count=SHADOW_LAYERS):
        """
        Queue a pass for the given inputs, superseding any earlier one.

        Returns a Future resolving to the composite, or None when the pass
        was superseded or had nothing to render.
        """
        with self.lock:
            self.generation += 1
            generation = self.generation
            if self.pending is not None:
                self.pending.cancel()
            future = self.runner.submit(
                self._run, generation, foreground, background, depth, light, layer_count
            )
            self.pending = future
        return future

    def is_stale(self, generation):
        return generation != self.generation

    def _run(self, generation, foreground, background, depth, light, layer_count):
        if self.is_stale(generation):
            return None

        try:
            composite = synthesize_shadow_composite(
                foreground, background, depth, light, layer_count,
                executor=self.layer_pool,
                is_stale=lambda: self.is_stale(generation),
            )
        except PassSuperseded as e:
            sys.stderr.write(f"ShadowPassScheduler: generation {generation} dropped ({e})\n")
            return None

        with self.lock:
            if composite is None or self.is_stale(generation):
                return None
            self.committed = composite
            self.committed_generation = generation
        return composite

    def latest(self):
        """(composite, generation) of the newest committed pass"""
        with self.lock:
            return self.committed, self.committed_generation

    def close(self):
        self.runner.shutdown(wait=True)
        if self.layer_pool is not None:
            self.layer_pool.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
