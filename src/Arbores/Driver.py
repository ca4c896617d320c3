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

The chain driver. A run goes INIT, then repeats a sweep (jitter steps followed
by one segment sampler step per bridge segment) until the chain holds N
entries. Capacity is checked after every single entry, so a run may end in the
middle of a sweep.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable
import numpy as np
from .BridgePoints import BridgePoints, create_bridge_points
from .Data import GenomeData, augment_with_non_segregating_sites
from .Initialisation import initialisation
from .Jittering import jittering
from .Likelihood import likelihood
from .MRCA import times_to_mrca
from .MetropolisHastings import (Chain, ChainEntry, MCMCDiagnostics,
                                 RunAborted)
from .Parameters import Parameters, SamplerSettings
from .Path import PathState, assert_path_invariants
from .Results import MapAggregator, ResultWriter
from .SMCPrior import smc_prior
from .SegmentSampler import segment_sampler

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]
Progress = Callable[[int, int], None]
Aggregator = Callable[[Chain, int, int, GenomeData], None]


def always_confirm(message : str) -> bool:
    return True


def console_confirm(message : str) -> bool:
    """
    Ask on the terminal whether to go on.
    """
    answer = input(f"{message} Continue? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


@dataclass
class RunContext:
    """
    Everything a running chain works with. Built at INIT and handed to the
    components explicitly.
    """

    data : GenomeData
    params : Parameters
    settings : SamplerSettings
    bridge_points : BridgePoints
    rng : np.random.Generator
    writer : ResultWriter | None
    chain : Chain
    iteration : int = 0
    full_scan_count : int = 0


class ChainDriver:
    """
    Runs the MCMC over paths of local trees.
    """

    def __init__(self, data : GenomeData, params : Parameters,
                 settings : SamplerSettings | None = None,
                 writer : ResultWriter | None = None,
                 confirm : Confirm = console_confirm,
                 progress : Progress | None = None,
                 aggregator : Aggregator | None = None) -> None:
        """
        Set up a driver.

        Args:
            data (GenomeData): The observed data.
            params (Parameters): Model parameters.
            settings (SamplerSettings | None, optional): Sampler tuning.
                                                         Defaults to
                                                         SamplerSettings().
            writer (ResultWriter | None, optional): Output collaborator.
                                                    Defaults to None (nothing
                                                    is written).
            confirm (Confirm, optional): Asked once before large runs.
                                         Defaults to console_confirm.
            progress (Progress | None, optional): Called with
                                                  (iteration, N) after every
                                                  entry. Defaults to None.
            aggregator (Aggregator | None, optional): Called after every
                                                      completed sweep.
                                                      Defaults to a
                                                      MapAggregator.
        Returns:
            N/A
        """
        self.data = data
        self.params = params
        self.settings = settings if settings is not None else SamplerSettings()
        self.writer = writer
        self.confirm = confirm
        self.progress = progress
        self.aggregator = aggregator if aggregator is not None \
                          else MapAggregator(writer)
        self.context : RunContext | None = None

    def _gate(self) -> None:
        n_segregating = len(self.data.segregating_sites)
        if n_segregating < self.settings.site_threshold:
            return
        message = f"The data has {n_segregating} segregating sites (threshold \
{self.settings.site_threshold}); the run may be slow or numerically unstable."
        if not self.confirm(message):
            raise RunAborted()

    def _initial_entry(self, path : PathState,
                       data : GenomeData) -> ChainEntry:
        ll = likelihood(path, data, self.params).log_likelihood
        prior = smc_prior(path, self.params, data)
        lp = prior.density
        diag = MCMCDiagnostics(accept_indicator = 1,
                               alpha = 1.0,
                               cardinality_ratio = 1.0,
                               current_log_likelihood = ll,
                               current_log_prior = lp,
                               current_recombination_density =
                                   prior.recombination_density,
                               irreducibility = 0,
                               jitter_step = 0,
                               log_likelihood = ll,
                               log_prior = lp,
                               log_posterior = ll + lp,
                               proposed_number_of_recombinations =
                                   path.n_recombinations,
                               move = "initial")
        return ChainEntry(path.copy(), diag)

    def _report(self, ctx : RunContext) -> None:
        if self.progress is not None:
            self.progress(ctx.iteration, ctx.chain.capacity)

    def _complete_sweep(self, ctx : RunContext, entry : ChainEntry) -> None:
        ctx.full_scan_count += 1
        if ctx.writer is not None:
            ctx.writer.write_mrca(times_to_mrca(entry.path, ctx.data.n_sites),
                                  ctx.full_scan_count)
            ctx.writer.write_path(entry.path,
                                  f"sweep {ctx.full_scan_count} iteration \
{ctx.iteration - 1}")
        self.aggregator(ctx.chain, ctx.iteration, ctx.full_scan_count,
                        ctx.data)

    def run(self, N : int, rng : np.random.Generator,
            initial_path : PathState | None = None) -> Chain:
        """
        Run the chain for N iterations.

        Args:
            N (int): Number of chain entries, the initial one included.
            rng (np.random.Generator): Random source of the run.
            initial_path (PathState | None, optional): Starting path.
                                                       Defaults to None (built
                                                       by initialisation).
        Raises:
            ValueError: if N < 1.
            RunAborted: if the confirmation gate is declined.
            InvariantViolation: if a recorded path breaks a path invariant.
        Returns:
            Chain: The N recorded entries.
        """
        if N < 1:
            raise ValueError(f"The chain length must be at least 1, got {N}")

        self._gate()
        chain = Chain(N)

        if initial_path is None:
            path = initialisation(self.data, self.params, rng)
        else:
            logger.info("Starting from the provided path")
            path = initial_path
        data = augment_with_non_segregating_sites(self.data, path)
        if data is not self.data:
            logger.info("Augmented the data with %d non segregating site(s)",
                        len(data.segregating_sites)
                        - len(self.data.segregating_sites))
        bp = create_bridge_points(data, self.settings.segment_length)
        assert_path_invariants(path, data)

        if self.writer is not None:
            self.writer.remove_chain_file()
            self.writer.remove_mrca_file()
            self.writer.remove_map_file()

        ctx = RunContext(data, self.params, self.settings, bp, rng,
                         self.writer, chain)
        self.context = ctx

        ctx.iteration = chain.append(self._initial_entry(path, data))
        self._report(ctx)
        if self.writer is not None:
            self.writer.write_path(path, "initial path")
        logger.info("Starting a chain of %d iterations over %d segment(s)",
                    N, bp.length)

        try:
            while ctx.iteration < N:
                ctx.iteration = jittering(chain, ctx.iteration, N,
                                          self.params, data, rng,
                                          self.settings.jitter_steps,
                                          self.progress)
                if ctx.iteration >= N:
                    break

                for i in range(bp.length):
                    entry = segment_sampler(chain.last.path, i, bp, data,
                                            self.params, rng)
                    assert_path_invariants(entry.path, data)
                    entry.full_scan = i == bp.length - 1
                    ctx.iteration = chain.append(entry)
                    if entry.full_scan:
                        self._complete_sweep(ctx, entry)
                    self._report(ctx)
                    if ctx.iteration >= N:
                        break
        finally:
            if self.writer is not None:
                self.writer.write_diagnostics(chain)

        logger.info("Chain finished: %d iterations, %d full sweep(s)",
                    ctx.iteration, ctx.full_scan_count)
        return chain


def run_chain(data : GenomeData, params : Parameters, N : int,
              seed : int | np.random.Generator | None = None,
              settings : SamplerSettings | None = None,
              writer : ResultWriter | None = None,
              confirm : Confirm = always_confirm,
              initial_path : PathState | None = None,
              progress : Progress | None = None) -> Chain:
    """
    Run a chain in one call.

    Args:
        data (GenomeData): The observed data.
        params (Parameters): Model parameters.
        N (int): Chain length.
        seed (int | np.random.Generator | None, optional): Seed or generator.
                                                           Defaults to None.
        settings (SamplerSettings | None, optional): Sampler tuning.
        writer (ResultWriter | None, optional): Output collaborator.
        confirm (Confirm, optional): Confirmation gate. Defaults to
                                     always_confirm.
        initial_path (PathState | None, optional): Starting path.
        progress (Progress | None, optional): Progress callback.
    Returns:
        Chain: The recorded chain.
    """
    rng = seed if isinstance(seed, np.random.Generator) \
          else np.random.default_rng(seed)
    driver = ChainDriver(data, params, settings, writer, confirm, progress)
    return driver.run(N, rng, initial_path)
