#! /usr/bin/env python
# -*- coding: utf-8 -*-

##############################################################################
##  -- Arbores --
##  Posterior sampling of ancestral recombination graphs
##
##  Copyright 2025 Mark Kessler, Luay Nakhleh.
##  All rights reserved.
##
##  See "LICENSE.txt" for terms and conditions of usage.
##
##  If you use this work or any portion thereof in published work,
##  please cite it as:
##
##     Mark Kessler, Luay Nakhleh. 2025.
##
##############################################################################

"""
Author : Mark Kessler
Last Stable Edit : 10/18/26
First Included in Version : 1.0.0
Docs   - [x]
Tests  - [x]
Design - [x]

Bridge points split the genome into consecutive windows. The segment sampler
only edits recombinations whose site falls in the window it is working on.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .Data import GenomeData


@dataclass(frozen = True)
class BridgePoints:
    """
    Window boundaries. Segment i covers [points[i], points[i + 1]), and the
    last segment ends at n_sites.
    """

    points : tuple[int, ...]
    n_sites : int

    @property
    def length(self) -> int:
        """
        Number of segments.
        """
        return len(self.points)

    def window(self, i : int) -> tuple[int, int]:
        """
        Site range [start, end) of segment i.
        """
        if not 0 <= i < self.length:
            raise IndexError(f"Segment {i} out of range [0, {self.length})")
        end = self.points[i + 1] if i + 1 < self.length else self.n_sites
        return self.points[i], end


def create_bridge_points(data : GenomeData,
                         target_length : int) -> BridgePoints:
    """
    Cut the genome into ceil(n_sites / target_length) windows of nearly equal
    size (sizes differ by at most one).

    Args:
        data (GenomeData): The run's data.
        target_length (int): Desired window size in sites.
    Raises:
        ValueError: if target_length is not a positive integer.
    Returns:
        BridgePoints: The segmentation.
    """
    if isinstance(target_length, bool) or not isinstance(target_length, int) \
       or target_length < 1:
        raise ValueError(f"Target segment length must be a positive integer, \
got {target_length!r}")

    n_sites = data.n_sites
    count = math.ceil(n_sites / target_length)
    points = tuple((i * n_sites) // count for i in range(count))
    return BridgePoints(points, n_sites)
