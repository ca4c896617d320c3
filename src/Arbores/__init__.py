#! /usr/bin/env python
# -*- coding: utf-8 -*-

##############################################################################
##  -- Arbores --
##  Posterior sampling of ancestral recombination graphs
##
##  Copyright 2025 Mark Kessler, Luay Nakhleh.
##  All rights reserved.
##############################################################################

"""
Arbores - MCMC sampling of ancestral recombination graphs

Draws paths of local trees (ARGs in their sequentially Markov form) from the
posterior given binary haplotype data, under an SMC prior and an infinite
sites likelihood.
"""

import logging

__version__ = "1.0.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Data and configuration
from .Data import (DataError, GenomeData, read_data,
                   augment_with_non_segregating_sites)
from .Parameters import Parameters, SamplerSettings

# Trees and paths
from .Tree import LocalTree, SprOperation, TreeError
from .Path import (PathState, PathError, InvariantViolation,
                   check_tree_path_completely, check_compatibility,
                   is_structurally_complete, is_compatible)
from .BridgePoints import BridgePoints, create_bridge_points

# Densities
from .Likelihood import likelihood, LikelihoodData
from .SMCPrior import smc_prior, SmcPriorData

# Sampling
from .Initialisation import initialisation
from .MetropolisHastings import (Chain, ChainEntry, MCMCDiagnostics,
                                 MetropolisHastingsException,
                                 ChainCapacityError, RunAborted,
                                 metropolis_hastings_step)
from .Jittering import jittering
from .SegmentSampler import segment_sampler
from .MRCA import MRCA, times_to_mrca
from .Results import MapAggregator, ResultWriter, read_path
from .Driver import ChainDriver, RunContext, run_chain, always_confirm
