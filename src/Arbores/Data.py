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

Observed haplotype data. A GenomeData holds a binary matrix (rows are sampled
haplotypes, columns are sites, 0 = ancestral and 1 = derived allele) and the
list of sites treated as segregating by the sampler.
"""

from __future__ import annotations
import bisect
import os
import warnings
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
import numpy as np
from Bio import AlignIO

if TYPE_CHECKING:
    from .Path import PathState

#########################
#### EXCEPTION CLASS ####
#########################

class DataError(Exception):
    """
    Raised when input data is missing, malformed, or unusable.
    """

    def __init__(self, message : str = "Invalid haplotype data") -> None:
        """
        Initialize a DataError with an error message.

        Args:
            message (str, optional): A custom error message. Defaults to
                                     "Invalid haplotype data".
        Returns:
            N/A
        """
        self.message = message
        super().__init__(self.message)


_ALIGNMENT_FORMATS : dict[str, str] = {".fasta" : "fasta",
                                       ".fa" : "fasta",
                                       ".fas" : "fasta",
                                       ".nex" : "nexus",
                                       ".nexus" : "nexus",
                                       ".phy" : "phylip-relaxed",
                                       ".phylip" : "phylip-relaxed"}

_PLAIN_FORMATS : set[str] = {".txt", ".dat"}

_NUCLEOTIDES : set[str] = set("ACGT01")


#####################
#### GENOME DATA ####
#####################

@dataclass(frozen = True, eq = False)
class GenomeData:
    """
    Immutable binary polymorphism data.

    'segregating_sites' starts as the polymorphic columns and may only grow
    (see augment_with_non_segregating_sites).
    """

    matrix : np.ndarray
    names : tuple[str, ...] = ()
    segregating_sites : tuple[int, ...] | None = None
    _masks : tuple[int | None, ...] = field(init = False, repr = False)

    def __post_init__(self) -> None:
        matrix = np.array(self.matrix, dtype = np.int8)
        if matrix.ndim != 2:
            raise DataError("The data matrix must be two dimensional")
        n_samples, n_sites = matrix.shape
        if n_samples < 2:
            raise DataError(f"At least 2 samples are needed, got {n_samples}")
        if n_sites < 1:
            raise DataError("The data contains no sites")
        if not np.all((matrix == 0) | (matrix == 1)):
            raise DataError("Data entries must be 0 (ancestral) or 1 \
(derived)")
        matrix.setflags(write = False)

        names = tuple(self.names) if self.names else \
                tuple(f"s{i}" for i in range(n_samples))
        if len(names) != n_samples:
            raise DataError(f"Got {len(names)} names for {n_samples} samples")

        full = (1 << n_samples) - 1
        masks : list[int | None] = []
        for column in matrix.T:
            mask = 0
            for v in np.flatnonzero(column):
                mask |= 1 << int(v)
            masks.append(mask if 0 < mask < full else None)

        polymorphic = [s for s, m in enumerate(masks) if m is not None]
        if self.segregating_sites is None:
            segregating = tuple(polymorphic)
        else:
            segregating = tuple(sorted(set(int(s)
                                           for s in self.segregating_sites)))
            if segregating and not (0 <= segregating[0]
                                    and segregating[-1] < n_sites):
                raise DataError("Segregating site out of range")
            missing = set(polymorphic) - set(segregating)
            if missing:
                raise DataError(f"Polymorphic sites {sorted(missing)} are not \
listed as segregating")

        object.__setattr__(self, "matrix", matrix)
        object.__setattr__(self, "names", names)
        object.__setattr__(self, "segregating_sites", segregating)
        object.__setattr__(self, "_masks", tuple(masks))

    def __eq__(self, other : object) -> bool:
        if not isinstance(other, GenomeData):
            return NotImplemented
        return np.array_equal(self.matrix, other.matrix) \
               and self.names == other.names \
               and self.segregating_sites == other.segregating_sites

    @classmethod
    def from_matrix(cls, matrix : list[list[int]] | np.ndarray,
                    names : list[str] | None = None) -> GenomeData:
        """
        Build data from a 0/1 matrix, segregating sites = polymorphic sites.

        Args:
            matrix (list[list[int]] | np.ndarray): samples x sites.
            names (list[str] | None, optional): Sample names. Defaults to
                                                s0, s1, ...
        Returns:
            GenomeData: The data.
        """
        return cls(np.asarray(matrix), tuple(names) if names else ())

    @property
    def n_samples(self) -> int:
        return self.matrix.shape[0]

    @property
    def n_sites(self) -> int:
        return self.matrix.shape[1]

    @property
    def polymorphic_sites(self) -> tuple[int, ...]:
        return tuple(s for s, m in enumerate(self._masks) if m is not None)

    @property
    def gap_sites(self) -> tuple[int, ...]:
        """
        Sites immediately before which a recombination may sit: every
        segregating site but the first.
        """
        return self.segregating_sites[1:]

    def derived_mask(self, site : int) -> int | None:
        """
        Leaves carrying the derived allele at a site.

        Args:
            site (int): A site index.
        Returns:
            int | None: Bit mask of carriers, None if the column is
                        monomorphic.
        """
        return self._masks[site]

    def is_segregating(self, site : int) -> bool:
        i = bisect.bisect_left(self.segregating_sites, site)
        return i < len(self.segregating_sites) \
               and self.segregating_sites[i] == site

    def gap_length(self, site : int) -> int:
        """
        Distance from a gap site back to the previous segregating site.

        Args:
            site (int): A gap site.
        Raises:
            DataError: if the site is not a gap site.
        Returns:
            int: The number of sites spanned by the gap.
        """
        i = bisect.bisect_left(self.segregating_sites, site)
        if i == 0 or i >= len(self.segregating_sites) \
           or self.segregating_sites[i] != site:
            raise DataError(f"Site {site} is not a gap site")
        return site - self.segregating_sites[i - 1]

    def polymorphic_in(self, start : int, end : int) -> list[int]:
        """
        Polymorphic sites within [start, end).
        """
        return [s for s in range(max(start, 0), min(end, self.n_sites))
                if self._masks[s] is not None]

    def with_segregating_sites(self, sites : list[int] | set[int]) \
                               -> GenomeData:
        return GenomeData(self.matrix, self.names,
                          tuple(sorted(set(self.segregating_sites)
                                       | set(sites))))


def augment_with_non_segregating_sites(data : GenomeData,
                                       path : PathState) -> GenomeData:
    """
    Promote every recombination site of a path that is not yet segregating to
    segregating status, so that the recombination sits at a gap site.

    Applying this twice with the same path is a no-op the second time.

    Args:
        data (GenomeData): The observed data.
        path (PathState): A path whose operations may sit at monomorphic
                          sites.
    Returns:
        GenomeData: 'data' itself if nothing changes, else the augmented copy.
    """
    new_sites = {s for s in path.sites if not data.is_segregating(s)}
    if not new_sites:
        return data
    return data.with_segregating_sites(new_sites)


######################
#### DATA READING ####
######################

def _read_plain(filename : str) -> tuple[list[str], list[str]]:
    names : list[str] = []
    rows : list[str] = []
    with open(filename) as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            tokens = line.split()
            if len(tokens) == 1:
                names.append(f"s{len(rows)}")
                rows.append(tokens[0])
            elif len(tokens) == 2:
                names.append(tokens[0])
                rows.append(tokens[1])
            else:
                raise DataError(f"Cannot parse line '{line}' of {filename}: \
expected '[name] sequence'")
    return names, rows


def _read_alignment(filename : str,
                    fmt : str) -> tuple[list[str], list[str]]:
    try:
        alignment = AlignIO.read(filename, fmt)
    except ValueError as err:
        raise DataError(f"Could not read {filename} as {fmt}: {err}") from err
    names = [rec.id for rec in alignment]
    rows = [str(rec.seq) for rec in alignment]
    return names, rows


def _polarise(rows : list[str]) -> np.ndarray:
    """
    Turn aligned character rows into a 0/1 matrix.

    Columns made only of 0/1 are used as they are. Nucleotide columns with
    two alleles take the major allele as ancestral (ties go to the allele of
    the first sample). Columns with gaps, ambiguity codes, or more than two
    alleles are dropped.
    """
    kept : list[list[int]] = []
    multi_allelic = 0
    ambiguous = 0
    for column in zip(*rows):
        column = tuple(c.upper() for c in column)
        alleles = set(column)
        if not alleles <= _NUCLEOTIDES:
            ambiguous += 1
            continue
        if alleles <= {"0", "1"}:
            kept.append([int(c) for c in column])
            continue
        if len(alleles) > 2:
            multi_allelic += 1
            continue
        counts = Counter(column)
        ancestral = column[0]
        for allele, count in counts.items():
            if count > counts[ancestral]:
                ancestral = allele
        kept.append([0 if c == ancestral else 1 for c in column])

    if ambiguous:
        warnings.warn(f"Dropped {ambiguous} column(s) containing gaps or \
ambiguous characters")
    if multi_allelic:
        warnings.warn(f"Dropped {multi_allelic} column(s) with more than two \
alleles")
    if not kept:
        raise DataError("No usable columns remain in the data")
    return np.array(kept, dtype = np.int8).T


def read_data(filename : str, fmt : str | None = None) -> GenomeData:
    """
    Read haplotypes from a file.

    Alignments (fasta, nexus, phylip) are read with Biopython. Files ending in
    .txt or .dat hold one haplotype per line, optionally preceded by a name.

    Args:
        filename (str): Path to the data file.
        fmt (str | None, optional): A Bio.AlignIO format name, or "plain".
                                    Defaults to a guess from the extension
                                    (fasta if unknown).
    Raises:
        DataError: if the file is missing or unusable.
    Returns:
        GenomeData: The polarised binary data.
    """
    if not os.path.isfile(filename):
        raise DataError(f"Data file {filename} does not exist")

    ext = os.path.splitext(filename)[1].lower()
    if fmt is None:
        fmt = "plain" if ext in _PLAIN_FORMATS \
              else _ALIGNMENT_FORMATS.get(ext, "fasta")

    if fmt == "plain":
        names, rows = _read_plain(filename)
    else:
        names, rows = _read_alignment(filename, fmt)

    if len(rows) < 2:
        raise DataError(f"{filename} holds {len(rows)} sequence(s); at least \
2 are needed")
    if len({len(r) for r in rows}) != 1:
        raise DataError(f"Sequences in {filename} are not of equal length")

    return GenomeData(_polarise(rows), tuple(names))
