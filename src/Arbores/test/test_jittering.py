from Arbores.Data import augment_with_non_segregating_sites
from Arbores.Jittering import jittering
from Arbores.MetropolisHastings import Chain, ChainEntry, MCMCDiagnostics


def started_chain(path, capacity : int) -> Chain:
    chain = Chain(capacity)
    chain.append(ChainEntry(path, MCMCDiagnostics(jitter_step = 0)))
    return chain


def test_jitter_steps_are_counted(tree_path, small_data, params, rng):
    chain = started_chain(tree_path, 10)
    calls = []
    iteration = jittering(chain, 1, 10, params, small_data, rng, steps = 3,
                          progress = lambda i, n : calls.append((i, n)))
    assert iteration == 4
    assert len(chain) == 4
    assert [chain[i].diagnostics.jitter_step for i in (1, 2, 3)] == [1, 2, 3]
    assert all(chain[i].diagnostics.move == "site_shift" for i in (1, 2, 3))
    assert calls == [(2, 10), (3, 10), (4, 10)]


def test_jittering_stops_at_capacity(tree_path, small_data, params, rng):
    chain = started_chain(tree_path, 2)
    assert jittering(chain, 1, 2, params, small_data, rng, steps = 5) == 2
    assert len(chain) == 2


def test_jittering_on_a_full_chain(tree_path, small_data, params, rng):
    chain = started_chain(tree_path, 1)
    calls = []
    iteration = jittering(chain, 1, 1, params, small_data, rng,
                          progress = lambda i, n : calls.append((i, n)))
    assert iteration == 1
    assert calls == []


def test_jittering_moves_recombinations(recombinant_path, recombinant_data,
                                        params, rng):
    data = augment_with_non_segregating_sites(recombinant_data,
                                              recombinant_path)
    chain = started_chain(recombinant_path, 41)
    assert jittering(chain, 1, 41, params, data, rng, steps = 40) == 41
    sites = {entry.path.sites[0] for entry in chain}
    assert sites <= {1, 2}
    for entry in chain:
        assert entry.path.trees == recombinant_path.trees
