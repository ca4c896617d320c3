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

Local (marginal) genealogies and the subtree-prune-and-regraft operations that
turn one local tree into the next along the genome.

A local tree over n sampled haplotypes has 2n - 1 nodes. Leaves are labelled
0..n-1 and sit at time 0, internal nodes are labelled n..2n-2. Labels are
stable along a path: an SPR reuses the old parent of the pruned node as the new
coalescence node, so operations can refer to nodes by label.
"""

from __future__ import annotations
import dataclasses
import math
from dataclasses import dataclass
import numpy as np


#########################
#### EXCEPTION CLASS ####
#########################

class TreeError(Exception):
    """
    Raised when a local tree is malformed, or when an SPR operation is not
    applicable to the tree it is applied to.
    """

    def __init__(self, message : str = "Invalid local tree or SPR operation") \
                 -> None:
        """
        Initialize a TreeError with an error message.

        Args:
            message (str, optional): A custom error message. Defaults to
                                     "Invalid local tree or SPR operation".
        Returns:
            N/A
        """
        self.message = message
        super().__init__(self.message)


#######################
#### SPR OPERATION ####
#######################

@dataclass(frozen=True)
class SprOperation:
    """
    One recombination event of the sequentially Markov coalescent.

    The recombination sits in the gap immediately before 'site'. The lineage
    above 'node' is cut at 'rec_time' and the floating lineage coalesces back
    into the remaining tree on the branch above 'target' at 'coal_time'.
    """

    site : int
    node : int
    rec_time : float
    target : int
    coal_time : float

    def replace(self, **changes) -> SprOperation:
        """
        Copy of this operation with some fields changed.

        Args:
            **changes: field name -> new value.
        Returns:
            SprOperation: The edited copy.
        """
        return dataclasses.replace(self, **changes)


####################
#### LOCAL TREE ####
####################

class LocalTree:
    """
    Binary, time-calibrated coalescent tree stored as parent and time arrays.

    Instances are never mutated after construction; every edit produces a new
    LocalTree. Derived quantities (children, clades, total branch length) are
    computed lazily and cached.
    """

    def __init__(self, parents : list[int] | np.ndarray,
                 times : list[float] | np.ndarray) -> None:
        """
        Build a tree from its parent and node time arrays.

        Args:
            parents (list[int] | np.ndarray): parents[v] is the parent label of
                                              node v, -1 for the root.
            times (list[float] | np.ndarray): times[v] is the age of node v.
        Raises:
            TreeError: if the arrays do not describe 2n - 1 nodes.
        Returns:
            N/A
        """
        self.parents : np.ndarray = np.array(parents, dtype = np.int64)
        self.times : np.ndarray = np.array(times, dtype = float)

        if self.parents.ndim != 1 or self.parents.shape != self.times.shape:
            raise TreeError("Parent and time arrays must be 1-D and of equal \
                            length")
        if len(self.parents) < 3 or len(self.parents) % 2 == 0:
            raise TreeError(f"A binary tree has 2n - 1 nodes, got \
                            {len(self.parents)}")

        self.parents.setflags(write = False)
        self.times.setflags(write = False)

        self.n_leaves : int = (len(self.parents) + 1) // 2
        self._children : list[list[int]] | None = None
        self._clades : list[int] | None = None
        self._clade_index : dict[int, int] | None = None
        self._total_length : float | None = None

    def __eq__(self, other : object) -> bool:
        if not isinstance(other, LocalTree):
            return NotImplemented
        return np.array_equal(self.parents, other.parents) \
               and np.array_equal(self.times, other.times)

    def __repr__(self) -> str:
        return f"LocalTree(parents={self.parents.tolist()}, \
times={self.times.tolist()})"

    @property
    def size(self) -> int:
        """
        Number of nodes, 2n - 1.
        """
        return len(self.parents)

    @property
    def root(self) -> int:
        """
        Label of the root node (the first node without a parent).
        """
        return int(np.flatnonzero(self.parents < 0)[0])

    def copy(self) -> LocalTree:
        return LocalTree(self.parents, self.times)

    def is_leaf(self, node : int) -> bool:
        return node < self.n_leaves

    def children(self, node : int) -> list[int]:
        """
        Get the children of a node.

        Args:
            node (int): A node label.
        Returns:
            list[int]: The child labels (empty for a leaf).
        """
        if self._children is None:
            kids : list[list[int]] = [[] for _ in range(self.size)]
            for v, p in enumerate(self.parents):
                if p >= 0:
                    kids[p].append(v)
            self._children = kids
        return self._children[node]

    def sibling(self, node : int) -> int:
        """
        Get the other child of a node's parent.

        Args:
            node (int): A non-root node label.
        Raises:
            TreeError: if node is the root.
        Returns:
            int: The sibling's label.
        """
        parent = int(self.parents[node])
        if parent < 0:
            raise TreeError("The root has no sibling")
        return next(v for v in self.children(parent) if v != node)

    def branch_length(self, node : int) -> float:
        """
        Length of the branch above a non-root node.

        Args:
            node (int): A non-root node label.
        Returns:
            float: times[parent] - times[node].
        """
        parent = self.parents[node]
        if parent < 0:
            raise TreeError("The root lineage has no finite branch length")
        return float(self.times[parent] - self.times[node])

    def total_length(self) -> float:
        """
        Sum of all branch lengths (the root lineage excluded).

        Returns:
            float: Total branch length.
        """
        if self._total_length is None:
            internal = self.parents >= 0
            self._total_length = float(np.sum(
                self.times[self.parents[internal]] - self.times[internal]))
        return self._total_length

    def clades(self) -> list[int]:
        """
        Leaf sets of every node, as bit masks (bit v set for leaf v).

        Returns:
            list[int]: clades[v] is the mask of leaves below node v.
        """
        if self._clades is None:
            masks = [0] * self.size
            for leaf in range(self.n_leaves):
                masks[leaf] = 1 << leaf
            # children are strictly younger than parents, so a time sort is a
            # valid post order
            for v in np.argsort(self.times, kind = "stable"):
                p = self.parents[v]
                if p >= 0:
                    masks[p] |= masks[v]
            self._clades = masks
        return self._clades

    def clade_index(self) -> dict[int, int]:
        """
        Map from leaf-set mask to the node that subtends exactly that set.
        """
        if self._clade_index is None:
            self._clade_index = {mask : v
                                 for v, mask in enumerate(self.clades())}
        return self._clade_index

    def subtree(self, node : int) -> set[int]:
        """
        All node labels in the subtree rooted at node, node included.
        """
        found : set[int] = set()
        stack = [node]
        while stack:
            v = stack.pop()
            found.add(v)
            stack.extend(self.children(v))
        return found

    def validate(self) -> list[str]:
        """
        Check that this is a well formed binary coalescent tree.

        Returns:
            list[str]: Error messages, empty if the tree is valid.
        """
        errors : list[str] = []
        n = self.n_leaves

        roots = np.flatnonzero(self.parents < 0)
        if len(roots) != 1:
            errors.append(f"expected exactly one root, found {len(roots)}")
        if np.any(self.parents >= self.size) or np.any(self.parents < -1):
            errors.append("parent label out of range")
            return errors
        if not np.all(np.isfinite(self.times)):
            errors.append("node times must be finite")
        if np.any(self.times[:n] != 0):
            errors.append("leaves must sit at time 0")

        counts = np.bincount(self.parents[self.parents >= 0],
                             minlength = self.size)
        for v in range(self.size):
            expected = 0 if v < n else 2
            if counts[v] != expected:
                errors.append(f"node {v} has {counts[v]} children, expected \
{expected}")
            p = self.parents[v]
            if p >= 0 and not self.times[p] > self.times[v]:
                errors.append(f"node {v} (t={self.times[v]}) is not younger \
than its parent {p} (t={self.times[p]})")
        return errors

    #######################
    #### SPR MACHINERY ####
    #######################

    def _remaining_parent(self, node : int, v : int) -> int:
        """
        Parent of v once the lineage above node has been pruned (the old
        parent of node is spliced out).
        """
        p = self.parents[node]
        if v == self.sibling(node):
            return int(self.parents[p])
        return int(self.parents[v])

    def remaining_top(self, node : int, v : int) -> float:
        """
        Upper end of v's branch in the tree with node's lineage pruned.

        Args:
            node (int): The pruned node.
            v (int): A node of the remaining tree.
        Returns:
            float: Parent time of v in the remaining tree, inf for its root.
        """
        parent = self._remaining_parent(node, v)
        return math.inf if parent < 0 else float(self.times[parent])

    def remaining_nodes(self, node : int) -> list[int]:
        """
        Nodes that stay in the tree when the lineage above node is pruned.
        """
        excluded = self.subtree(node)
        excluded.add(int(self.parents[node]))
        return [v for v in range(self.size) if v not in excluded]

    def regraft_targets(self, node : int,
                        rec_time : float) -> list[tuple[int, float, float]]:
        """
        Branches of the remaining tree that the floating lineage can coalesce
        into, given that it floats from rec_time upwards.

        Args:
            node (int): The pruned node.
            rec_time (float): Time of the recombination.
        Returns:
            list[tuple[int, float, float]]: (target, lower, top) triples, where
                                            (lower, top) is the admissible
                                            coalescence time interval.
        """
        targets = []
        for v in self.remaining_nodes(node):
            top = self.remaining_top(node, v)
            if top > rec_time:
                targets.append((v, max(rec_time, float(self.times[v])), top))
        return targets

    def coalescence_exposure(self, node : int, rec_time : float,
                             coal_time : float) -> float:
        """
        Integral of the number of remaining lineages over (rec_time,
        coal_time), i.e. the total waiting exposure of the floating lineage.

        Args:
            node (int): The pruned node.
            rec_time (float): Start of the float.
            coal_time (float): End of the float.
        Returns:
            float: Sum over remaining branches of their overlap with the
                   interval.
        """
        exposure = 0.0
        for v in self.remaining_nodes(node):
            top = self.remaining_top(node, v)
            overlap = min(coal_time, top) - max(rec_time, float(self.times[v]))
            if overlap > 0:
                exposure += overlap
        return exposure

    def check_operation(self, op : SprOperation) -> None:
        """
        Verify that an SPR operation is applicable to this tree.

        Args:
            op (SprOperation): The operation to check.
        Raises:
            TreeError: describing the first violated condition.
        Returns:
            N/A
        """
        x, y = op.node, op.target
        if not 0 <= x < self.size or self.parents[x] < 0:
            raise TreeError(f"Cannot prune node {x}: not a non-root node")
        p = int(self.parents[x])
        if not self.times[x] <= op.rec_time < self.times[p]:
            raise TreeError(f"Recombination time {op.rec_time} is not on the \
branch above node {x} [{self.times[x]}, {self.times[p]})")
        if not 0 <= y < self.size:
            raise TreeError(f"Target node {y} does not exist")
        if y == p or y in self.subtree(x):
            raise TreeError(f"Target node {y} is not in the remaining tree")
        top = self.remaining_top(x, y)
        if not (op.coal_time > op.rec_time
                and self.times[y] < op.coal_time < top):
            raise TreeError(f"Coalescence time {op.coal_time} is not on the \
branch above target {y} ({self.times[y]}, {top}) after {op.rec_time}")

    def apply(self, op : SprOperation) -> LocalTree:
        """
        Apply an SPR operation and return the resulting tree.

        Args:
            op (SprOperation): A recombination event.
        Raises:
            TreeError: if the operation is not applicable.
        Returns:
            LocalTree: The next local tree.
        """
        self.check_operation(op)

        x, y = op.node, op.target
        p = int(self.parents[x])
        s = self.sibling(x)
        g = int(self.parents[p])
        y_parent = self._remaining_parent(x, y)

        parents = self.parents.copy()
        times = self.times.copy()

        # splice p out, then back in on the branch above y
        parents[s] = g
        parents[p] = y_parent
        parents[y] = p
        times[p] = op.coal_time

        return LocalTree(parents, times)
