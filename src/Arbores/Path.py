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

An ARG in its sequentially Markov form: a path of local trees along the genome,
each tree obtained from the previous one by one SPR operation.

Tree k covers sites [start_k, start_{k+1}), with start_0 = 0 and start_k the
site of operation k - 1. Several operations may share a site, in which case the
trees between them cover no site at all.
"""

from __future__ import annotations
import bisect
from typing import TYPE_CHECKING
from .Tree import LocalTree, SprOperation, TreeError

if TYPE_CHECKING:
    from .Data import GenomeData

###########################
#### EXCEPTION CLASSES ####
###########################

class PathError(Exception):
    """
    Raised when a path cannot be built, e.g. an operation does not apply to
    the tree before it, or operation sites decrease.
    """

    def __init__(self, message : str = "Invalid tree path") -> None:
        """
        Initialize a PathError with an error message.

        Args:
            message (str, optional): A custom error message. Defaults to
                                     "Invalid tree path".
        Returns:
            N/A
        """
        self.message = message
        super().__init__(self.message)

class InvariantViolation(Exception):
    """
    Raised when a path about to be committed to the chain is not structurally
    complete or not compatible with the data. This is never a normal outcome
    of sampling and stops the run.
    """

    def __init__(self, message : str = "A committed path violates a path \
invariant") -> None:
        """
        Initialize an InvariantViolation with an error message.

        Args:
            message (str, optional): A custom error message. Defaults to
                                     "A committed path violates a path
                                     invariant".
        Returns:
            N/A
        """
        self.message = message
        super().__init__(self.message)


####################
#### PATH STATE ####
####################

class PathState:
    """
    Sequence of local trees and the SPR operations linking them.
    """

    def __init__(self, trees : list[LocalTree],
                 operations : list[SprOperation]) -> None:
        """
        Wrap already consistent trees and operations. Use from_operations to
        build a path from a first tree and operations.

        Args:
            trees (list[LocalTree]): path_len local trees.
            operations (list[SprOperation]): path_len - 1 operations.
        Raises:
            PathError: if the lengths do not match.
        Returns:
            N/A
        """
        if len(trees) != len(operations) + 1:
            raise PathError(f"{len(trees)} trees cannot be linked by \
{len(operations)} operations")
        self.trees : list[LocalTree] = list(trees)
        self.operations : list[SprOperation] = list(operations)

    @classmethod
    def from_operations(cls, first_tree : LocalTree,
                        operations : list[SprOperation]) -> PathState:
        """
        Replay operations from a first tree.

        Args:
            first_tree (LocalTree): The tree covering site 0.
            operations (list[SprOperation]): SPRs in genome order.
        Raises:
            PathError: if an operation does not apply or sites decrease.
        Returns:
            PathState: The replayed path.
        """
        trees = [first_tree.copy()]
        previous_site = 1
        for k, op in enumerate(operations):
            if op.site < previous_site:
                raise PathError(f"Operation {k} sits at site {op.site}, \
before site {previous_site}")
            previous_site = op.site
            try:
                trees.append(trees[-1].apply(op))
            except TreeError as err:
                raise PathError(f"Operation {k} ({op}) is invalid: \
{err.message}") from err
        return cls(trees, list(operations))

    def __eq__(self, other : object) -> bool:
        if not isinstance(other, PathState):
            return NotImplemented
        return self.operations == other.operations \
               and self.trees == other.trees

    def __repr__(self) -> str:
        return f"PathState(path_len={self.path_len}, \
operations={self.operations})"

    @property
    def path_len(self) -> int:
        return len(self.trees)

    @property
    def n_recombinations(self) -> int:
        return len(self.operations)

    @property
    def n_leaves(self) -> int:
        return self.trees[0].n_leaves

    @property
    def sites(self) -> list[int]:
        return [op.site for op in self.operations]

    @property
    def rec_times(self) -> list[float]:
        return [op.rec_time for op in self.operations]

    def copy(self) -> PathState:
        """
        Independent copy. Trees are immutable, so sharing them is safe; the
        lists are duplicated.
        """
        return PathState(list(self.trees), list(self.operations))

    def tree_index(self, site : int) -> int:
        """
        Index of the tree covering a site (the last tree starting at or before
        the site).

        Args:
            site (int): A site index.
        Returns:
            int: Index into self.trees.
        """
        return bisect.bisect_right(self.sites, site)

    def tree_at(self, site : int) -> LocalTree:
        return self.trees[self.tree_index(site)]

    def tree_ranges(self, n_sites : int) -> list[tuple[int, int]]:
        """
        Site range [start, end) of every tree. Empty ranges are kept so the
        result lines up with self.trees.

        Args:
            n_sites (int): Number of sites in the genome.
        Returns:
            list[tuple[int, int]]: One range per tree.
        """
        starts = [0] + self.sites
        ends = self.sites + [n_sites]
        return list(zip(starts, ends))

    def site_bounds(self, site : int) -> tuple[int, int]:
        """
        Indices lo, hi such that operations[lo:hi] are those at a site.
        """
        sites = self.sites
        return bisect.bisect_left(sites, site), bisect.bisect_right(sites, site)

    def rebuild(self, operations : list[SprOperation]) -> PathState:
        """
        A new path with the same first tree and different operations.

        Raises:
            PathError: if the new operations do not replay.
        """
        return PathState.from_operations(self.trees[0], operations)


################################
#### INVARIANTS OF THE PATH ####
################################

def check_tree_path_completely(path : PathState,
                               n_sites : int | None = None) -> list[str]:
    """
    Full structural check: every tree is a valid binary coalescent tree, all
    trees share the same leaf count, every operation applies to the tree
    before it and reproduces the tree after it, and operation sites are
    non-decreasing and inside [1, n_sites).

    Args:
        path (PathState): The path to check.
        n_sites (int | None, optional): Number of sites, for the range check.
                                        Defaults to None (upper bound
                                        unchecked).
    Returns:
        list[str]: Violations found, empty if the path is complete.
    """
    errors : list[str] = []
    if len(path.trees) != len(path.operations) + 1:
        return [f"{len(path.trees)} trees for {len(path.operations)} \
operations"]

    n = path.trees[0].n_leaves
    for k, tree in enumerate(path.trees):
        if tree.n_leaves != n:
            errors.append(f"tree {k} has {tree.n_leaves} leaves, expected {n}")
        errors.extend(f"tree {k}: {msg}" for msg in tree.validate())
    if errors:
        return errors

    previous = 1
    for k, op in enumerate(path.operations):
        if op.site < previous:
            errors.append(f"operation {k} at site {op.site} is out of order")
        if n_sites is not None and op.site >= n_sites:
            errors.append(f"operation {k} at site {op.site} is beyond the \
last site {n_sites - 1}")
        previous = max(previous, op.site)
        try:
            replayed = path.trees[k].apply(op)
        except TreeError as err:
            errors.append(f"operation {k} does not apply: {err.message}")
            continue
        if replayed != path.trees[k + 1]:
            errors.append(f"operation {k} does not produce tree {k + 1}")
    return errors


def check_compatibility(path : PathState, data : GenomeData) -> list[str]:
    """
    Check that a path explains the data under infinite sites: every
    recombination sits at a gap site, and at every polymorphic site the
    carriers of the derived allele form the clade of a non-root node of the
    covering tree.

    Args:
        path (PathState): The path to check.
        data (GenomeData): The observed data.
    Returns:
        list[str]: Violations found, empty if compatible.
    """
    errors : list[str] = []
    if path.n_leaves != data.n_samples:
        return [f"path has {path.n_leaves} leaves but data has \
{data.n_samples} samples"]

    gaps = set(data.gap_sites)
    for k, op in enumerate(path.operations):
        if op.site not in gaps:
            errors.append(f"operation {k} sits at site {op.site}, which is \
not a gap site")

    for site in data.polymorphic_sites:
        tree = path.tree_at(site)
        node = tree.clade_index().get(data.derived_mask(site))
        if node is None or node == tree.root:
            errors.append(f"derived allele at site {site} is not a clade of \
its local tree")
    return errors


def is_structurally_complete(path : PathState,
                             n_sites : int | None = None) -> bool:
    return not check_tree_path_completely(path, n_sites)


def is_compatible(path : PathState, data : GenomeData) -> bool:
    return not check_compatibility(path, data)


def assert_path_invariants(path : PathState, data : GenomeData) -> None:
    """
    Raise if a path is not fit to be committed to the chain.

    Args:
        path (PathState): A path about to be recorded.
        data (GenomeData): The (augmented) data of the run.
    Raises:
        InvariantViolation: listing every violation found.
    Returns:
        N/A
    """
    errors = check_tree_path_completely(path, data.n_sites)
    if not errors:
        errors = check_compatibility(path, data)
    if errors:
        raise InvariantViolation("Path invariant violated: " +
                                 "; ".join(errors))
