import pytest
from Arbores.Data import augment_with_non_segregating_sites
from Arbores.Path import (InvariantViolation, PathError, PathState,
                          assert_path_invariants, check_compatibility,
                          check_tree_path_completely, is_compatible,
                          is_structurally_complete)
from Arbores.Tree import LocalTree
from conftest import SPR_0_ONTO_2, SPR_1_ONTO_3, SPR_2_ONTO_0


####################
#### PATH STATE ####
####################

def test_from_operations(tree4, one_op_path):
    assert one_op_path.path_len == 2
    assert one_op_path.n_recombinations == 1
    assert one_op_path.n_leaves == 4
    assert one_op_path.sites == [1]
    assert one_op_path.rec_times == [0.2]
    assert one_op_path.trees[0] == tree4
    assert one_op_path.trees[1] == tree4.apply(SPR_0_ONTO_2)


def test_tree_index(one_op_path):
    assert one_op_path.tree_index(0) == 0
    assert one_op_path.tree_index(1) == 1
    assert one_op_path.tree_index(2) == 1
    assert one_op_path.tree_ranges(3) == [(0, 1), (1, 3)]


def test_operations_sharing_a_site(tree4):
    path = PathState.from_operations(tree4, [SPR_0_ONTO_2, SPR_1_ONTO_3])
    assert path.path_len == 3
    assert path.tree_ranges(3) == [(0, 1), (1, 1), (1, 3)]
    assert path.tree_index(1) == 2
    assert path.site_bounds(1) == (0, 2)
    assert path.site_bounds(2) == (2, 2)
    assert path.tree_at(2).root == 5


def test_from_operations_rejects_bad_input(tree4):
    with pytest.raises(PathError):
        PathState.from_operations(tree4, [SPR_0_ONTO_2.replace(site = 0)])
    with pytest.raises(PathError):
        PathState.from_operations(tree4, [SPR_0_ONTO_2.replace(site = 2),
                                          SPR_1_ONTO_3.replace(site = 1)])
    with pytest.raises(PathError):
        PathState.from_operations(tree4, [SPR_0_ONTO_2.replace(target = 4)])
    with pytest.raises(PathError):
        PathState([tree4], [SPR_0_ONTO_2])


def test_copy_is_independent(one_op_path):
    other = one_op_path.copy()
    assert other == one_op_path
    other.operations.append(SPR_1_ONTO_3)
    assert one_op_path.n_recombinations == 1


def test_rebuild(one_op_path, tree4):
    rebuilt = one_op_path.rebuild([])
    assert rebuilt.path_len == 1
    assert rebuilt.trees[0] == tree4
    with pytest.raises(PathError):
        one_op_path.rebuild([SPR_0_ONTO_2.replace(target = 4)])


#########################
#### PATH INVARIANTS ####
#########################

def test_complete_path(one_op_path):
    assert check_tree_path_completely(one_op_path, 3) == []
    assert is_structurally_complete(one_op_path)


def test_incomplete_paths(tree4, one_op_path):
    # second tree does not follow from the operation
    broken = PathState([tree4, tree4], [SPR_0_ONTO_2])
    errors = check_tree_path_completely(broken)
    assert any("does not produce" in e for e in errors)

    # malformed tree
    bad_tree = LocalTree([4, 4, 5, 5, 6, 6, -1], [0, 0, 0, 0, 2.0, 0.8, 1.5])
    assert check_tree_path_completely(PathState([bad_tree], []))

    # operation beyond the last site
    assert check_tree_path_completely(one_op_path, 1)
    assert not is_structurally_complete(one_op_path, 1)


def test_compatibility(tree_path, one_op_path, small_data):
    assert check_compatibility(tree_path, small_data) == []
    assert is_compatible(tree_path, small_data)

    # {2, 3} is no longer a clade after leaf 0 joins leaf 2
    errors = check_compatibility(one_op_path, small_data)
    assert len(errors) == 1
    assert "site 2" in errors[0]


def test_recombination_must_sit_at_a_gap(recombinant_path, recombinant_data):
    errors = check_compatibility(recombinant_path, recombinant_data)
    assert any("not a gap site" in e for e in errors)

    augmented = augment_with_non_segregating_sites(recombinant_data,
                                                   recombinant_path)
    assert check_compatibility(recombinant_path, augmented) == []
    assert_path_invariants(recombinant_path, augmented)


def test_same_path_at_a_segregating_gap(tree4, recombinant_data):
    path = PathState.from_operations(tree4, [SPR_2_ONTO_0.replace(site = 2)])
    assert is_compatible(path, recombinant_data)


def test_assert_path_invariants(one_op_path, small_data):
    with pytest.raises(InvariantViolation):
        assert_path_invariants(one_op_path, small_data)


def test_leaf_count_mismatch(small_data):
    path = PathState([LocalTree([2, 2, -1], [0, 0, 1.0])], [])
    assert check_compatibility(path, small_data)
