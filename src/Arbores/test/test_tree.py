import math
import numpy as np
import pytest
from Arbores.Tree import LocalTree, SprOperation, TreeError
from conftest import SPR_0_ONTO_2, SPR_1_ONTO_3, TREE4_PARENTS


#####################
#### LOCAL TREES ####
#####################

def test_basic_quantities(tree4):
    assert tree4.validate() == []
    assert tree4.n_leaves == 4
    assert tree4.size == 7
    assert tree4.root == 6
    assert tree4.total_length() == pytest.approx(4.3)
    assert tree4.branch_length(4) == pytest.approx(1.0)
    assert tree4.branch_length(2) == pytest.approx(0.8)
    assert sorted(tree4.children(6)) == [4, 5]
    assert tree4.children(0) == []
    assert tree4.sibling(0) == 1
    assert tree4.sibling(4) == 5
    assert tree4.subtree(4) == {0, 1, 4}


def test_clades(tree4):
    assert tree4.clades() == [1, 2, 4, 8, 3, 12, 15]
    index = tree4.clade_index()
    assert index[3] == 4
    assert index[12] == 5
    assert index[15] == 6
    assert 5 not in index


def test_root_has_no_branch(tree4):
    with pytest.raises(TreeError):
        tree4.sibling(6)
    with pytest.raises(TreeError):
        tree4.branch_length(6)


def test_arrays_are_read_only(tree4):
    with pytest.raises(ValueError):
        tree4.parents[0] = 5
    with pytest.raises(ValueError):
        tree4.times[4] = 0.1


def test_equality_and_copy(tree4):
    other = tree4.copy()
    assert other == tree4
    assert other is not tree4
    assert LocalTree(TREE4_PARENTS, [0, 0, 0, 0, 0.5, 0.9, 1.5]) != tree4


def test_bad_sizes():
    with pytest.raises(TreeError):
        LocalTree([1, -1], [0, 1])
    with pytest.raises(TreeError):
        LocalTree([2, 2, -1], [0, 0])


def test_validate_reports_problems():
    # parent younger than child
    errors = LocalTree([4, 4, 5, 5, 6, 6, -1],
                       [0, 0, 0, 0, 2.0, 0.8, 1.5]).validate()
    assert any("not younger" in e for e in errors)

    # two roots
    errors = LocalTree([4, 4, 5, 5, 6, -1, -1],
                       [0, 0, 0, 0, 0.5, 0.8, 1.5]).validate()
    assert any("root" in e for e in errors)

    # leaf not at time 0
    errors = LocalTree(TREE4_PARENTS, [0.1, 0, 0, 0, 0.5, 0.8, 1.5]).validate()
    assert any("time 0" in e for e in errors)


########################
#### SPR OPERATIONS ####
########################

def test_apply_spr(tree4):
    tree = tree4.apply(SPR_0_ONTO_2)
    assert tree.parents.tolist() == [4, 6, 4, 5, 5, 6, -1]
    assert tree.times.tolist() == [0, 0, 0, 0, 0.6, 0.8, 1.5]
    assert tree.validate() == []
    assert tree.clade_index()[5] == 4
    # the source tree is untouched
    assert tree4.parents.tolist() == TREE4_PARENTS


def test_apply_spr_moving_the_root(tree4):
    tree = tree4.apply(SPR_0_ONTO_2).apply(SPR_1_ONTO_3)
    assert tree.parents.tolist() == [4, 6, 4, 6, 5, -1, 5]
    assert tree.times.tolist() == [0, 0, 0, 0, 0.6, 0.8, 0.3]
    assert tree.root == 5
    assert tree.validate() == []


def test_regraft_above_root(tree4):
    tree = tree4.apply(SprOperation(1, 0, 0.2, 6, 2.0))
    assert tree.validate() == []
    assert tree.root == 4
    assert tree.times[4] == pytest.approx(2.0)
    assert sorted(tree.children(4)) == [0, 6]
    assert sorted(tree.children(6)) == [1, 5]


def test_regraft_onto_sibling(tree4):
    # regrafting onto the sibling lineage, above the old parent
    tree = tree4.apply(SprOperation(1, 0, 0.2, 1, 1.0))
    assert tree.validate() == []
    assert tree.parents[1] == 4 and tree.parents[0] == 4
    assert tree.parents[4] == 6
    assert tree.times[4] == pytest.approx(1.0)


def test_regraft_targets(tree4):
    targets = tree4.regraft_targets(0, 0.2)
    assert sorted(t for t, _, _ in targets) == [1, 2, 3, 5, 6]
    by_node = {t : (lower, top) for t, lower, top in targets}
    assert by_node[1] == (0.2, 1.5)
    assert by_node[2] == (0.2, 0.8)
    assert by_node[5] == (0.8, 1.5)
    assert by_node[6][0] == 1.5 and math.isinf(by_node[6][1])

    assert sorted(t for t, _, _ in tree4.regraft_targets(0, 1.0)) == [1, 5, 6]


def test_remaining_tree(tree4):
    assert sorted(tree4.remaining_nodes(0)) == [1, 2, 3, 5, 6]
    assert tree4.remaining_top(0, 1) == pytest.approx(1.5)
    assert tree4.remaining_top(0, 2) == pytest.approx(0.8)
    assert math.isinf(tree4.remaining_top(0, 6))


def test_coalescence_exposure(tree4):
    assert tree4.coalescence_exposure(0, 0.2, 0.6) == pytest.approx(1.2)
    # 3 lineages on (0.2, 0.8), 2 on (0.8, 1.5), 1 above
    assert tree4.coalescence_exposure(0, 0.2, 2.0) == pytest.approx(
        3 * 0.6 + 2 * 0.7 + 0.5)


@pytest.mark.parametrize("op", [
    SprOperation(1, 0, 0.2, 4, 0.3),    # target is the old parent
    SprOperation(1, 0, 0.2, 0, 0.3),    # target is the pruned node
    SprOperation(1, 4, 0.6, 0, 0.7),    # target below the pruned node
    SprOperation(1, 0, 0.6, 2, 0.7),    # recombination above the parent
    SprOperation(1, 0, 0.2, 2, 0.9),    # coalescence above the target branch
    SprOperation(1, 0, 0.2, 2, 0.1),    # coalescence before recombination
    SprOperation(1, 6, 1.6, 2, 0.3),    # pruning the root
    SprOperation(1, 0, 0.2, 9, 0.3),    # unknown target
])
def test_invalid_operations(tree4, op):
    with pytest.raises(TreeError):
        tree4.apply(op)


def test_operation_replace():
    op = SPR_0_ONTO_2.replace(site = 2)
    assert op.site == 2
    assert op.node == SPR_0_ONTO_2.node
    assert SPR_0_ONTO_2.site == 1
    assert np.isclose(op.coal_time, 0.6)
