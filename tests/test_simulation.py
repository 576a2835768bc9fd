import numpy as np
import pytest

import phenostan

from phenostan.data import hinge_years
from phenostan.simulation import (
    GroundTruth,
    draw_species_parameters,
    simulate_observations,
)


def test_ground_truth_defaults():
    truth = GroundTruth()
    assert truth.to_dict() == {
        "mu_a": 150.0,
        "sigma_a": 15.0,
        "mu_b": -0.4,
        "sigma_b": 0.2,
        "sigma_y": 5.0,
    }


def test_ground_truth_rejects_negative_scale():
    with pytest.raises(ValueError):
        GroundTruth(sigma_y=-1.0)


def test_simulation_is_reproducible():
    first = simulate_observations(n_species=4, seed=7)
    second = simulate_observations(n_species=4, seed=7)
    np.testing.assert_array_equal(
        first.data.observations["doy"], second.data.observations["doy"]
    )
    np.testing.assert_array_equal(
        first.species_parameters.to_numpy(), second.species_parameters.to_numpy()
    )


def test_simulation_follows_global_seed():
    phenostan.manual_seed(11)
    first = simulate_observations(n_species=4)
    phenostan.manual_seed(11)
    second = simulate_observations(n_species=4)
    np.testing.assert_array_equal(
        first.data.observations["doy"], second.data.observations["doy"]
    )


def test_years_per_species_and_range():
    dataset = simulate_observations(
        n_species=20, year_range=(1960, 2010), years_per_species=(5, 15), seed=3
    )
    obs = dataset.data.observations
    assert dataset.data.n_species == 20
    assert obs["year"].between(1960, 2010).all()
    counts = obs.groupby("species").size()
    assert counts.between(5, 15).all()

    # Years within a species are distinct
    assert not obs.duplicated(["species", "year"]).any()


def test_noise_free_simulation_matches_hinge_line():
    truth = GroundTruth(sigma_y=0.0)
    dataset = simulate_observations(truth, n_species=5, seed=1)
    obs = dataset.data.observations
    params = dataset.species_parameters.loc[obs["species"]]
    expected = params["a"].to_numpy() + params["b"].to_numpy() * hinge_years(
        obs["year"].to_numpy(), 1980
    )
    np.testing.assert_allclose(obs["doy"].to_numpy(), expected)


def test_species_parameters_match_ground_truth_in_aggregate():
    params = draw_species_parameters(n_species=5000, seed=5)
    assert params.index[0] == 1
    assert params["a"].mean() == pytest.approx(150.0, abs=1.0)
    assert params["a"].std() == pytest.approx(15.0, rel=0.05)
    assert params["b"].mean() == pytest.approx(-0.4, abs=0.02)
    assert params["b"].std() == pytest.approx(0.2, rel=0.05)


def test_true_values_labels(simulated):
    truth = simulated.true_values()
    assert list(truth)[:5] == ["mu_a", "sigma_a", "mu_b", "sigma_b", "sigma_y"]
    assert {"a[1]", "a[3]", "b[2]"} <= set(truth)
    assert len(truth) == 5 + 2 * 3


@pytest.mark.parametrize(
    "kwargs",
    [
        {"n_species": 0},
        {"year_range": (2000, 1990)},
        {"years_per_species": (0, 5)},
        {"years_per_species": (10, 5)},
        {"year_range": (2000, 2004), "years_per_species": (2, 10)},
    ],
)
def test_invalid_simulation_settings(kwargs):
    with pytest.raises(ValueError):
        simulate_observations(**kwargs)
