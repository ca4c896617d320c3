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

The Metropolis-Hastings step and the chain it records into.
"""

from __future__ import annotations
import dataclasses
import logging
import math
from dataclasses import dataclass, field
from typing import Iterator
import numpy as np
from .Data import GenomeData
from .Likelihood import likelihood
from .Parameters import Parameters
from .Path import PathState
from .PathMoves import Move
from .SMCPrior import smc_prior

logger = logging.getLogger(__name__)

# exp() overflows past ~709.78
MAX_LOG_ALPHA : float = 700.0

###########################
#### EXCEPTION CLASSES ####
###########################

class MetropolisHastingsException(Exception):
    """
    This exception is raised when there is an error running the Metropolis
    Hastings algorithm.
    """

    def __init__(self,
                 message : str = "Error running Metropolis-Hastings") -> None:
        """
        Initialize the exception with an error message.

        Args:
            message (str, optional): A custom error message. Defaults to
                                     "Error running Metropolis-Hastings".
        Returns:
            N/A
        """
        self.message = message
        super().__init__(self.message)

class ChainCapacityError(MetropolisHastingsException):
    """
    Raised when an entry is appended to a full chain.
    """

    def __init__(self, message : str = "The chain is full") -> None:
        super().__init__(message)

class RunAborted(MetropolisHastingsException):
    """
    Raised when the user declines to start a run at the confirmation gate.
    """

    def __init__(self, message : str = "Run aborted by the user") -> None:
        super().__init__(message)


#####################
#### CHAIN STATE ####
#####################

@dataclass
class MCMCDiagnostics:
    """
    Per iteration record of a Metropolis-Hastings step. Every field is always
    present; the ones that do not apply to an entry hold -1.
    """

    accept_indicator : int = -1
    alpha : float = -1
    cardinality_ratio : float = -1
    current_free_time_density : float = -1
    current_log_likelihood : float = -1
    current_log_prior : float = -1
    current_number_of_free_times : int = -1
    current_recombination_density : float = -1
    irreducibility : int = -1
    jitter_step : int = -1
    log_likelihood : float = -1
    log_prior : float = -1
    log_posterior : float = -1
    proposed_free_time_density : float = -1
    proposed_log_likelihood : float = -1
    proposed_log_prior : float = -1
    proposed_number_of_free_times : int = -1
    proposed_number_of_recombinations : int = -1
    proposed_recombination_density : float = -1
    move : str = ""

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in dataclasses.fields(cls)]

    def as_dict(self) -> dict[str, float | int | str]:
        return dataclasses.asdict(self)


@dataclass
class ChainEntry:
    path : PathState
    diagnostics : MCMCDiagnostics = field(default_factory = MCMCDiagnostics)
    full_scan : bool = False


class Chain:
    """
    Fixed capacity, append-only record of the chain. The index of an entry is
    its iteration number.
    """

    def __init__(self, capacity : int) -> None:
        """
        Pre-allocate room for 'capacity' entries.

        Args:
            capacity (int): Number of iterations of the run.
        Raises:
            ValueError: if capacity < 1.
        Returns:
            N/A
        """
        if capacity < 1:
            raise ValueError(f"Chain capacity must be at least 1, got \
{capacity}")
        self.capacity : int = capacity
        self._entries : list[ChainEntry | None] = [None] * capacity
        self._size : int = 0

    def __len__(self) -> int:
        return self._size

    def __getitem__(self, index : int) -> ChainEntry:
        if index < 0:
            index += self._size
        if not 0 <= index < self._size:
            raise IndexError(f"Chain index {index} out of range")
        return self._entries[index]

    def __iter__(self) -> Iterator[ChainEntry]:
        for i in range(self._size):
            yield self._entries[i]

    @property
    def full(self) -> bool:
        return self._size >= self.capacity

    @property
    def last(self) -> ChainEntry:
        return self[-1]

    def append(self, entry : ChainEntry) -> int:
        """
        Record an entry.

        Args:
            entry (ChainEntry): The next state of the chain.
        Raises:
            ChainCapacityError: if the chain is full.
        Returns:
            int: The new iteration number (number of entries recorded).
        """
        if self.full:
            raise ChainCapacityError(f"Cannot append past the capacity of \
{self.capacity} entries")
        self._entries[self._size] = entry
        self._size += 1
        return self._size


#############################
#### METROPOLIS HASTINGS ####
#############################

def log_acceptance_ratio(current_log_posterior : float,
                         proposed_log_posterior : float,
                         cardinality_ratio : float,
                         current_free_time_density : float,
                         proposed_free_time_density : float) -> float:
    """
    log alpha = delta log posterior + log(cardinality ratio)
                + current free time density - proposed free time density.

    A NaN (e.g. -inf minus -inf) is treated as -inf.
    """
    if cardinality_ratio <= 0:
        return -math.inf
    log_alpha = proposed_log_posterior - current_log_posterior \
                + math.log(cardinality_ratio) \
                + current_free_time_density - proposed_free_time_density
    if math.isnan(log_alpha):
        return -math.inf
    return log_alpha


def metropolis_hastings_step(path : PathState, move : Move,
                             data : GenomeData, params : Parameters,
                             rng : np.random.Generator,
                             jitter_step : int = 0) -> ChainEntry:
    """
    One proposal, accept or reject cycle.

    Args:
        path (PathState): The current path (left untouched).
        move (Move): The move to propose with.
        data (GenomeData): The run's data.
        params (Parameters): Model parameters.
        rng (np.random.Generator): Random source of the run.
        jitter_step (int, optional): Jitter counter to record. Defaults to 0.
    Returns:
        ChainEntry: The accepted proposal, or a copy of the current path with
                    accept_indicator = 0.
    """
    current_ll = likelihood(path, data, params).log_likelihood
    current_prior = smc_prior(path, params, data)
    current_lp = current_prior.density

    diag = MCMCDiagnostics(
        accept_indicator = 0,
        alpha = 0.0,
        current_log_likelihood = current_ll,
        current_log_prior = current_lp,
        current_number_of_free_times = 2 * path.n_recombinations,
        current_recombination_density = current_prior.recombination_density,
        irreducibility = move.irreducibility,
        jitter_step = jitter_step,
        log_likelihood = current_ll,
        log_prior = current_lp,
        log_posterior = current_ll + current_lp,
        move = move.name)

    proposal = move.propose(path, data, params, rng)
    if proposal.path is None:
        logger.debug("%s: no valid proposal", move.name)
        return ChainEntry(path.copy(), diag)

    proposed = proposal.path
    proposed_ll = likelihood(proposed, data, params).log_likelihood
    proposed_prior = smc_prior(proposed, params, data)
    proposed_lp = proposed_prior.density

    diag.cardinality_ratio = proposal.cardinality_ratio
    diag.current_free_time_density = proposal.current_free_time_density
    diag.proposed_free_time_density = proposal.proposed_free_time_density
    diag.proposed_log_likelihood = proposed_ll
    diag.proposed_log_prior = proposed_lp
    diag.proposed_number_of_free_times = 2 * proposed.n_recombinations
    diag.proposed_number_of_recombinations = proposed.n_recombinations
    diag.proposed_recombination_density = proposed_prior.recombination_density

    log_alpha = log_acceptance_ratio(current_ll + current_lp,
                                     proposed_ll + proposed_lp,
                                     proposal.cardinality_ratio,
                                     proposal.current_free_time_density,
                                     proposal.proposed_free_time_density)
    diag.alpha = math.exp(min(log_alpha, MAX_LOG_ALPHA))

    if rng.random() < diag.alpha:
        diag.accept_indicator = 1
        diag.log_likelihood = proposed_ll
        diag.log_prior = proposed_lp
        diag.log_posterior = proposed_ll + proposed_lp
        logger.debug("%s accepted (alpha = %.4g)", move.name, diag.alpha)
        return ChainEntry(proposed, diag)

    logger.debug("%s rejected (alpha = %.4g)", move.name, diag.alpha)
    return ChainEntry(path.copy(), diag)
