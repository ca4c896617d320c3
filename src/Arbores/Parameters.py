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

Run configuration: the model parameters and the sampler settings. Both are
frozen for the duration of a run.
"""

from dataclasses import dataclass


@dataclass(frozen = True)
class Parameters:
    """
    Model parameters.

    Attributes:
        mu (float): Mutation rate per site, scaled by the effective
                    population size.
        rho (float): Recombination rate per site, likewise scaled.
        n_eff (float): Effective population size (time unit of the
                       coalescent). Defaults to 1.
        verbosity (int): 0 = quiet, 1 = info, 2+ = debug.
    """

    mu : float
    rho : float
    n_eff : float = 1.0
    verbosity : int = 0

    def __post_init__(self) -> None:
        if not self.mu > 0:
            raise ValueError(f"Mutation rate must be positive, got \
{self.mu}")
        if not self.rho > 0:
            raise ValueError(f"Recombination rate must be positive, got \
{self.rho}")
        if not self.n_eff > 0:
            raise ValueError(f"Effective population size must be positive, \
got {self.n_eff}")


@dataclass(frozen = True)
class SamplerSettings:
    """
    Tuning of the chain.

    Attributes:
        segment_length (int): Target number of sites per bridge segment.
        jitter_steps (int): Jitter steps run before every sweep.
        site_threshold (int): Number of segregating sites from which the run
                              asks for confirmation before starting.
    """

    segment_length : int = 5
    jitter_steps : int = 1
    site_threshold : int = 30

    def __post_init__(self) -> None:
        if not isinstance(self.segment_length, int) or self.segment_length < 1:
            raise ValueError(f"Segment length must be a positive integer, got \
{self.segment_length}")
        if not isinstance(self.jitter_steps, int) or self.jitter_steps < 0:
            raise ValueError(f"Jitter steps must be a non-negative integer, \
got {self.jitter_steps}")
        if self.site_threshold < 1:
            raise ValueError(f"Site threshold must be positive, got \
{self.site_threshold}")
