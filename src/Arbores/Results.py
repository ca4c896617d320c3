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

Output of a run: the path log, the MRCA log, the maximum a posteriori path and
the per iteration diagnostics, all kept in one output folder.

Paths are stored as text, one block per path:

    # free comment line(s)
    TREE <parent_0>,...,<parent_2n-2> <time_0>,...,<time_2n-2>
    OP <site> <node> <rec_time> <target> <coal_time>
    ...

Blocks are separated by blank lines.
"""

from __future__ import annotations
import csv
import logging
import os
from collections import Counter
from typing import Callable
from .Data import GenomeData
from .MRCA import MRCA
from .MetropolisHastings import Chain, ChainEntry, MCMCDiagnostics
from .Path import PathError, PathState
from .Tree import LocalTree, SprOperation, TreeError

logger = logging.getLogger(__name__)

CHAIN_FILE = "chain.txt"
MRCA_FILE = "mrca.txt"
MAP_FILE = "map.txt"
DIAGNOSTICS_FILE = "diagnostics.csv"


##########################
#### PATH TEXT FORMAT ####
##########################

def format_path(path : PathState, comment : str | None = None) -> str:
    """
    Text block of a path.

    Args:
        path (PathState): The path to write.
        comment (str | None, optional): Text for the leading comment line(s).
                                        Defaults to None.
    Returns:
        str: The block, ending with a blank line.
    """
    lines = []
    if comment:
        lines.extend(f"# {line}" for line in comment.splitlines())
    first = path.trees[0]
    lines.append("TREE " + ",".join(str(int(p)) for p in first.parents) + " "
                 + ",".join(repr(float(t)) for t in first.times))
    for op in path.operations:
        lines.append(f"OP {op.site} {op.node} {op.rec_time!r} {op.target} \
{op.coal_time!r}")
    return "\n".join(lines) + "\n\n"


def parse_path(lines : list[str]) -> PathState:
    """
    Build a path from the lines of the first block of a path file.

    Args:
        lines (list[str]): Lines of text.
    Raises:
        PathError: on malformed content.
    Returns:
        PathState: The path.
    """
    tree : LocalTree | None = None
    operations : list[SprOperation] = []

    for number, raw in enumerate(lines, start = 1):
        line = raw.strip()
        if line.startswith("#"):
            continue
        if not line:
            if tree is not None:
                break
            continue

        tokens = line.split()
        try:
            if tokens[0] == "TREE" and tree is None and len(tokens) == 3:
                parents = [int(p) for p in tokens[1].split(",")]
                times = [float(t) for t in tokens[2].split(",")]
                tree = LocalTree(parents, times)
            elif tokens[0] == "OP" and tree is not None and len(tokens) == 6:
                operations.append(SprOperation(int(tokens[1]),
                                               int(tokens[2]),
                                               float(tokens[3]),
                                               int(tokens[4]),
                                               float(tokens[5])))
            else:
                raise PathError(f"Unexpected content on line {number}: \
'{line}'")
        except (ValueError, TreeError) as err:
            raise PathError(f"Cannot parse line {number}: {err}") from err

    if tree is None:
        raise PathError("No TREE line found")
    errors = tree.validate()
    if errors:
        raise PathError("Invalid first tree: " + "; ".join(errors))
    return PathState.from_operations(tree, operations)


def read_path(filename : str, data : GenomeData | None = None) -> PathState:
    """
    Read the first path stored in a file.

    Args:
        filename (str): A file in the path text format.
        data (GenomeData | None, optional): If given, the path must have one
                                            leaf per sample and its sites must
                                            lie within the data. Defaults to
                                            None.
    Raises:
        PathError: if the file cannot be read or holds no valid path.
    Returns:
        PathState: The path.
    """
    try:
        with open(filename) as handle:
            lines = handle.readlines()
    except OSError as err:
        raise PathError(f"Cannot read path file {filename}: {err}") from err

    path = parse_path(lines)
    if data is not None:
        if path.n_leaves != data.n_samples:
            raise PathError(f"Path in {filename} has {path.n_leaves} leaves \
but the data has {data.n_samples} samples")
        if path.operations and path.sites[-1] >= data.n_sites:
            raise PathError(f"Path in {filename} has a recombination beyond \
site {data.n_sites - 1}")
    return path


#######################
#### RESULT WRITER ####
#######################

class ResultWriter:
    """
    Writes the results of a run into a folder. Every write is fire and
    forget: an OSError is logged as a warning and the run goes on.
    """

    def __init__(self, folder : str) -> None:
        """
        Create the output folder if needed.

        Args:
            folder (str): Output directory.
        Raises:
            OSError: if the folder cannot be created.
        Returns:
            N/A
        """
        os.makedirs(folder, exist_ok = True)
        self.folder = folder
        self.chain_file = os.path.join(folder, CHAIN_FILE)
        self.mrca_file = os.path.join(folder, MRCA_FILE)
        self.map_file = os.path.join(folder, MAP_FILE)
        self.diagnostics_file = os.path.join(folder, DIAGNOSTICS_FILE)

    def _attempt(self, what : str, action : Callable[[], None]) -> bool:
        try:
            action()
            return True
        except OSError as err:
            logger.warning("Could not %s: %s", what, err)
            return False

    def _append(self, filename : str, text : str) -> None:
        with open(filename, "a") as handle:
            handle.write(text)

    def _remove(self, filename : str) -> None:
        if os.path.exists(filename):
            os.remove(filename)

    def remove_chain_file(self) -> bool:
        return self._attempt("remove " + self.chain_file,
                             lambda : self._remove(self.chain_file))

    def remove_mrca_file(self) -> bool:
        return self._attempt("remove " + self.mrca_file,
                             lambda : self._remove(self.mrca_file))

    def remove_map_file(self) -> bool:
        return self._attempt("remove " + self.map_file,
                             lambda : self._remove(self.map_file))

    def write_path(self, path : PathState, comment : str | None = None) \
                   -> bool:
        """
        Append a path block to the chain log.
        """
        text = format_path(path, comment)
        return self._attempt("write " + self.chain_file,
                             lambda : self._append(self.chain_file, text))

    def write_mrca(self, mrca : MRCA, sweep : int) -> bool:
        """
        Append one line to the MRCA log: the sweep number followed by
        start-end:time for each local tree covering sites.
        """
        fields = [f"{s}-{e}:{t!r}"
                  for s, e, t in zip(mrca.starts, mrca.ends, mrca.times)]
        text = " ".join([str(sweep)] + fields) + "\n"
        return self._attempt("write " + self.mrca_file,
                             lambda : self._append(self.mrca_file, text))

    def write_map(self, path : PathState, comment : str | None = None) \
                  -> bool:
        """
        Replace the stored maximum a posteriori path.
        """
        text = format_path(path, comment)

        def overwrite() -> None:
            with open(self.map_file, "w") as handle:
                handle.write(text)

        return self._attempt("write " + self.map_file, overwrite)

    def write_diagnostics(self, chain : Chain) -> bool:
        """
        Write one CSV row per chain entry.
        """
        columns = ["iteration", "full_scan"] + MCMCDiagnostics.field_names()

        def dump() -> None:
            with open(self.diagnostics_file, "w", newline = "") as handle:
                writer = csv.DictWriter(handle, fieldnames = columns)
                writer.writeheader()
                for i, entry in enumerate(chain):
                    row = entry.diagnostics.as_dict()
                    row["iteration"] = i
                    row["full_scan"] = int(entry.full_scan)
                    writer.writerow(row)

        return self._attempt("write " + self.diagnostics_file, dump)


########################
#### MAP AGGREGATOR ####
########################

class MapAggregator:
    """
    Sweep hook that tracks the maximum a posteriori (MAP) state of the chain
    and the acceptance rate of every move. It only reads the chain.
    """

    def __init__(self, writer : ResultWriter | None = None) -> None:
        self.writer = writer
        self.best : ChainEntry | None = None
        self.best_iteration : int = -1
        self.proposed : Counter = Counter()
        self.accepted : Counter = Counter()
        self._scanned : int = 0

    def acceptance_rates(self) -> dict[str, float]:
        return {move : self.accepted[move] / count
                for move, count in self.proposed.items() if count}

    def __call__(self, chain : Chain, iteration : int, full_scan_count : int,
                 data : GenomeData) -> None:
        """
        Scan the entries recorded since the previous call.

        Args:
            chain (Chain): The chain.
            iteration (int): Current iteration.
            full_scan_count (int): Sweeps completed so far.
            data (GenomeData): The run's data.
        Returns:
            N/A
        """
        improved = False
        for i in range(self._scanned, len(chain)):
            entry = chain[i]
            diag = entry.diagnostics
            if i > 0:
                self.proposed[diag.move] += 1
                self.accepted[diag.move] += diag.accept_indicator == 1
            if self.best is None \
               or diag.log_posterior > self.best.diagnostics.log_posterior:
                self.best = entry
                self.best_iteration = i
                improved = True
        self._scanned = len(chain)

        if improved and self.writer is not None:
            self.writer.write_map(self.best.path,
                                  f"iteration {self.best_iteration} \
log_posterior {self.best.diagnostics.log_posterior!r} \
samples {data.n_samples} sites {data.n_sites}")

        rates = ", ".join(f"{move} {rate:.3f}"
                          for move, rate in
                          sorted(self.acceptance_rates().items()))
        logger.info("Sweep %d done at iteration %d: MAP log posterior %.6g \
(iteration %d); acceptance %s", full_scan_count, iteration,
                    self.best.diagnostics.log_posterior, self.best_iteration,
                    rates or "n/a")
