#!/usr/bin/env python3
"""
Silhouette extraction: which foreground pixels cast shadow.
"""

import sys

import numpy as np

# Pixels at or below this alpha contribute no shadow
ALPHA_THRESHOLD = 10


def extract_silhouette(raster, threshold=ALPHA_THRESHOLD):
    """
    Boolean mask (height x width) of subject pixels: alpha > threshold

    An all-transparent raster yields an all-False mask.
    """
    return raster.alpha > threshold


def silhouette_coverage(mask):
    """
    Summarize a silhouette mask.

    Returns:
        Dict with pixel count and top/bottom rows of the subject
        (None when the mask is empty)
    """
    rows = np.flatnonzero(mask.any(axis=1))
    count = int(np.count_nonzero(mask))
    if count == 0:
        sys.stderr.write("silhouette_coverage: empty silhouette, no shadow will be cast\n")
        return dict(pixels=0, top=None, bottom=None)

    return dict(pixels=count, top=int(rows[0]), bottom=int(rows[-1]))
