import csv
import os
import numpy as np
import pytest
from Arbores.Data import GenomeData
from Arbores.Driver import ChainDriver, always_confirm, run_chain
from Arbores.Likelihood import likelihood
from Arbores.MetropolisHastings import ChainEntry, MCMCDiagnostics, RunAborted
from Arbores.Parameters import SamplerSettings
from Arbores.Path import InvariantViolation, assert_path_invariants
from Arbores.Results import ResultWriter, read_path
from Arbores.SMCPrior import smc_prior


def full_scans(chain) -> list[int]:
    return [i for i, entry in enumerate(chain) if entry.full_scan]


######################
#### CHAIN LAYOUT ####
######################

def test_sweeps_end_at_every_third_entry(small_data, params):
    # one initial entry, then jitter + 2 segments per sweep
    settings = SamplerSettings(segment_length = 2, jitter_steps = 1)
    chain = run_chain(small_data, params, 10, seed = 1, settings = settings)
    assert len(chain) == 10
    assert full_scans(chain) == [3, 6, 9]
    assert chain[0].diagnostics.move == "initial"
    assert [chain[i].diagnostics.jitter_step for i in range(10)] == \
           [0, 1, 0, 0, 1, 0, 0, 1, 0, 0]


@pytest.mark.parametrize("N", [1, 2, 3])
def test_short_runs_stop_mid_sweep(small_data, params, N):
    settings = SamplerSettings(segment_length = 1)
    chain = run_chain(small_data, params, N, seed = 2, settings = settings)
    assert len(chain) == N
    assert full_scans(chain) == []


def test_sweep_with_one_site_per_segment(small_data, params):
    settings = SamplerSettings(segment_length = 1)
    chain = run_chain(small_data, params, 9, seed = 3, settings = settings)
    assert full_scans(chain) == [4, 8]


def test_several_jitter_steps(small_data, params):
    settings = SamplerSettings(segment_length = 3, jitter_steps = 2)
    chain = run_chain(small_data, params, 7, seed = 4, settings = settings)
    assert full_scans(chain) == [3, 6]
    assert [chain[i].diagnostics.jitter_step for i in range(7)] == \
           [0, 1, 2, 0, 1, 2, 0]


def test_invalid_length(small_data, params):
    with pytest.raises(ValueError):
        run_chain(small_data, params, 0)


def test_same_seed_same_chain(small_data, params):
    first = run_chain(small_data, params, 12, seed = 11)
    second = run_chain(small_data, params, 12, seed = 11)
    assert [e.path for e in first] == [e.path for e in second]
    assert [e.diagnostics for e in first] == [e.diagnostics for e in second]


def test_every_entry_is_valid(recombinant_data, params):
    driver = ChainDriver(recombinant_data, params,
                         SamplerSettings(segment_length = 1),
                         confirm = always_confirm)
    chain = driver.run(30, np.random.default_rng(5))
    for entry in chain:
        assert_path_invariants(entry.path, driver.context.data)


##############
#### GATE ####
##############

def test_gate_declined(small_data, params):
    messages = []

    def decline(message : str) -> bool:
        messages.append(message)
        return False

    driver = ChainDriver(small_data, params,
                         SamplerSettings(site_threshold = 3),
                         confirm = decline)
    with pytest.raises(RunAborted):
        driver.run(5, np.random.default_rng(0))
    assert len(messages) == 1
    assert "3 segregating sites" in messages[0]


def test_gate_accepted_once(small_data, params, rng):
    messages = []

    def accept(message : str) -> bool:
        messages.append(message)
        return True

    driver = ChainDriver(small_data, params,
                         SamplerSettings(site_threshold = 3),
                         confirm = accept)
    assert len(driver.run(8, rng)) == 8
    assert len(messages) == 1


def test_gate_not_asked_below_threshold(small_data, params, rng):
    def refuse(message : str) -> bool:
        raise AssertionError("should not be asked")

    driver = ChainDriver(small_data, params, confirm = refuse)
    assert len(driver.run(3, rng)) == 3


########################
#### INITIALISATION ####
########################

def test_provided_initial_path(recombinant_data, recombinant_path, params,
                               rng):
    driver = ChainDriver(recombinant_data, params, confirm = always_confirm)
    chain = driver.run(6, rng, recombinant_path)
    assert chain[0].path == recombinant_path
    assert driver.context.data.segregating_sites == (0, 1, 2)
    assert driver.context.bridge_points.n_sites == 3
    assert recombinant_data.segregating_sites == (0, 2)


#######################
#### COLLABORATORS ####
#######################

def test_progress_and_aggregator(small_data, params, rng):
    progress = []
    sweeps = []
    driver = ChainDriver(small_data, params,
                         SamplerSettings(segment_length = 2),
                         confirm = always_confirm,
                         progress = lambda i, n : progress.append((i, n)),
                         aggregator = lambda chain, i, count, data :
                             sweeps.append((i, count)))
    driver.run(10, rng)
    assert progress == [(i, 10) for i in range(1, 11)]
    assert sweeps == [(4, 1), (7, 2), (10, 3)]
    assert driver.context.full_scan_count == 3
    assert driver.context.iteration == 10


def test_output_files(small_data, params, rng, tmp_path):
    writer = ResultWriter(str(tmp_path / "out"))
    driver = ChainDriver(small_data, params,
                         SamplerSettings(segment_length = 2), writer,
                         confirm = always_confirm)
    chain = driver.run(10, rng)

    assert read_path(writer.chain_file) == chain[0].path
    with open(writer.chain_file) as handle:
        text = handle.read()
    assert text.count("TREE ") == 4
    assert "# initial path" in text
    assert "# sweep 3 iteration 9" in text

    with open(writer.mrca_file) as handle:
        lines = handle.read().splitlines()
    assert [line.split()[0] for line in lines] == ["1", "2", "3"]

    with open(writer.diagnostics_file, newline = "") as handle:
        rows = list(csv.DictReader(handle))
    assert len(rows) == 10
    assert [row["iteration"] for row in rows] == [str(i) for i in range(10)]
    assert [i for i, row in enumerate(rows) if row["full_scan"] == "1"] == \
           [3, 6, 9]

    assert os.path.exists(writer.map_file)
    assert driver.aggregator.best is not None
    assert read_path(writer.map_file) == driver.aggregator.best.path


def test_previous_results_are_removed(small_data, params, rng, tmp_path):
    writer = ResultWriter(str(tmp_path))
    for filename in (writer.chain_file, writer.mrca_file, writer.map_file):
        with open(filename, "w") as handle:
            handle.write("stale\n")
    ChainDriver(small_data, params, writer = writer,
                confirm = always_confirm).run(2, rng)
    with open(writer.chain_file) as handle:
        assert "stale" not in handle.read()
    assert not os.path.exists(writer.mrca_file)
    assert not os.path.exists(writer.map_file)


#######################
#### INITIAL ENTRY ####
#######################

def test_initial_entry(recombinant_data, recombinant_path, params, rng):
    driver = ChainDriver(recombinant_data, params, confirm = always_confirm)
    chain = driver.run(4, rng, recombinant_path)
    data = driver.context.data
    diag = chain[0].diagnostics

    assert diag.move == "initial"
    assert diag.accept_indicator == 1
    assert diag.alpha == 1.0
    assert diag.cardinality_ratio == 1.0
    assert diag.irreducibility == 0
    assert diag.jitter_step == 0
    assert diag.proposed_number_of_recombinations == \
           recombinant_path.n_recombinations == 1
    for name in ("proposed_log_likelihood", "proposed_log_prior",
                 "proposed_recombination_density",
                 "proposed_free_time_density",
                 "proposed_number_of_free_times",
                 "current_free_time_density",
                 "current_number_of_free_times"):
        assert getattr(diag, name) == -1, name

    ll = likelihood(recombinant_path, data, params).log_likelihood
    prior = smc_prior(recombinant_path, params, data)
    assert diag.current_log_likelihood == diag.log_likelihood == ll
    assert diag.current_log_prior == diag.log_prior == prior.density
    assert diag.current_recombination_density == \
           prior.recombination_density
    assert prior.recombination_density != -1
    assert diag.log_posterior == pytest.approx(ll + prior.density)


##########################
#### CHAIN PROPERTIES ####
##########################

RECOMBINING_ROWS = [[1, 1, 0, 0, 1, 0],
                    [1, 0, 1, 0, 1, 1],
                    [0, 1, 1, 1, 0, 0],
                    [0, 0, 0, 1, 0, 1],
                    [1, 0, 0, 1, 1, 0]]


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_chain_wide_properties(params, seed):
    data = GenomeData.from_matrix(RECOMBINING_ROWS)
    driver = ChainDriver(data, params, SamplerSettings(segment_length = 2),
                         confirm = always_confirm)
    chain = driver.run(200, np.random.default_rng(seed))
    assert len(chain) == 200

    for entry in chain:
        diag = entry.diagnostics
        assert diag.log_posterior == pytest.approx(
            diag.log_likelihood + diag.log_prior, abs = 1e-9)
        assert diag.accept_indicator in (0, 1)
        assert diag.alpha >= 0
        assert_path_invariants(entry.path, driver.context.data)
    assert driver.context.full_scan_count > 0


##############################
#### INVARIANT VIOLATIONS ####
##############################

def test_invalid_path_stops_the_run(small_data, one_op_path, params, rng,
                                    tmp_path, monkeypatch):
    # one_op_path cannot explain the derived allele at site 2
    calls = []

    def broken_sampler(path, i, bp, data, params, rng):
        calls.append(i)
        return ChainEntry(one_op_path.copy(),
                          MCMCDiagnostics(move = "regraft"))

    monkeypatch.setattr("Arbores.Driver.segment_sampler", broken_sampler)
    writer = ResultWriter(str(tmp_path))
    driver = ChainDriver(small_data, params, writer = writer,
                         confirm = always_confirm)
    with pytest.raises(InvariantViolation):
        driver.run(10, rng)

    chain = driver.context.chain
    assert calls == [0]
    assert len(chain) == 2
    assert chain[0].diagnostics.move == "initial"
    assert all(e.path != one_op_path for e in chain)

    with open(writer.diagnostics_file, newline = "") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["iteration"] for row in rows] == ["0", "1"]
