import numpy as np
import pytest
from Arbores.Data import GenomeData
from Arbores.Parameters import Parameters
from Arbores.Path import PathState
from Arbores.Tree import LocalTree, SprOperation


#########################
#### SHARED FIXTURES ####
#########################

TREE4_PARENTS = [4, 4, 5, 5, 6, 6, -1]
TREE4_TIMES = [0, 0, 0, 0, 0.5, 0.8, 1.5]

# prune leaf 0 at 0.2, regraft above leaf 2 at 0.6
SPR_0_ONTO_2 = SprOperation(1, 0, 0.2, 2, 0.6)

# on the tree produced by SPR_0_ONTO_2: prune leaf 1 at 0.1, regraft above
# leaf 3 at 0.3
SPR_1_ONTO_3 = SprOperation(1, 1, 0.1, 3, 0.3)

# prune leaf 2 at 0.1, regraft above leaf 0 at 0.3 (makes {0, 2} a clade)
SPR_2_ONTO_0 = SprOperation(1, 2, 0.1, 0, 0.3)


@pytest.fixture
def tree4() -> LocalTree:
    """
    ((0,1):0.5, (2,3):0.8):1.5
    """
    return LocalTree(TREE4_PARENTS, TREE4_TIMES)


@pytest.fixture
def small_data() -> GenomeData:
    """
    4 samples, 3 polymorphic sites, all clades of tree4.
    """
    return GenomeData.from_matrix([[1, 1, 0],
                                   [1, 0, 0],
                                   [0, 0, 1],
                                   [0, 0, 1]])


@pytest.fixture
def recombinant_data() -> GenomeData:
    """
    Sites 0 ({0, 1}) and 2 ({0, 2}) cannot share a tree; site 1 is
    monomorphic.
    """
    return GenomeData.from_matrix([[1, 0, 1],
                                   [1, 0, 0],
                                   [0, 0, 1],
                                   [0, 0, 0]])


@pytest.fixture
def tree_path(tree4) -> PathState:
    return PathState.from_operations(tree4, [])


@pytest.fixture
def one_op_path(tree4) -> PathState:
    return PathState.from_operations(tree4, [SPR_0_ONTO_2])


@pytest.fixture
def recombinant_path(tree4) -> PathState:
    """
    Compatible with recombinant_data once site 1 is made segregating.
    """
    return PathState.from_operations(tree4, [SPR_2_ONTO_0])


@pytest.fixture
def params() -> Parameters:
    return Parameters(mu = 0.1, rho = 0.1)


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(2025)
