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
Small numerical helpers shared by the density code.
"""

import math
import numpy as np


def safe_log(x : float) -> float:
    """
    Natural log that maps non-positive input to -inf instead of raising.

    Args:
        x (float): Any real number.
    Returns:
        float: log(x), or -inf if x <= 0.
    """
    if x <= 0:
        return -math.inf
    return math.log(x)


def log1mexp(x : float) -> float:
    """
    Compute log(1 - exp(-x)) for x >= 0 without cancellation.

    Args:
        x (float): A non-negative rate times length.
    Returns:
        float: log(1 - exp(-x)), -inf when x == 0.
    """
    if x <= 0:
        return -math.inf
    return float(np.log(-np.expm1(-x)))
