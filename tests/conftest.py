import arviz as az
import numpy as np
import pytest

from phenostan.data import PhenologyData
from phenostan.defaults import HYPERPARAMETER_NAMES
from phenostan.model.results.hmc import SampleResults
from phenostan.simulation import simulate_observations


def build_results(
    dataset,
    n_chains=4,
    n_draws=1000,
    posterior_sd=0.5,
    offsets=None,
    seed=0,
):
    """Fake fit results whose posterior is centered on the simulated truth.

    ``offsets`` maps hyperparameter names to shifts of their posterior mean.
    """
    rng = np.random.default_rng(seed)
    offsets = offsets or {}
    shape = (n_chains, n_draws)
    data = dataset.data
    truth = dataset.ground_truth.to_dict()

    # Posterior draws around the truth. Scales are kept positive.
    posterior = {
        name: np.abs(
            truth[name] + offsets.get(name, 0.0) + rng.normal(0, posterior_sd, shape)
        )
        if name.startswith("sigma")
        else truth[name] + offsets.get(name, 0.0) + rng.normal(0, posterior_sd, shape)
        for name in HYPERPARAMETER_NAMES
    }
    for name in ("a", "b"):
        posterior[name] = dataset.species_parameters[name].to_numpy()[
            None, None
        ] + rng.normal(0, posterior_sd, shape + (data.n_species,))

    # Posterior predictive draws around the observations
    observed = data.observations["doy"].to_numpy(dtype=float)
    y_rep = observed[None, None] + rng.normal(0, 5.0, shape + (data.n_obs,))

    idata = az.from_dict(
        posterior=posterior,
        posterior_predictive={"y_rep": y_rep},
        observed_data={"y": observed},
        sample_stats={
            "diverging": np.zeros(shape, dtype=bool),
            "tree_depth": np.full(shape, 3),
            "energy": rng.normal(0, 1, shape),
        },
        coords={
            "species": list(data.species_labels),
            "obs": np.arange(data.n_obs),
        },
        dims={"a": ["species"], "b": ["species"], "y_rep": ["obs"], "y": ["obs"]},
    )
    idata.sample_stats.attrs["max_depth"] = 10
    return SampleResults(idata)


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def small_data():
    return PhenologyData.from_arrays(
        species=["oak", "oak", "ash", "ash", "elm"],
        year=[1970, 1990, 1975, 2000, 1980],
        doy=[120.0, 115.0, 130.0, 122.0, 140.0],
    )


@pytest.fixture
def simulated():
    return simulate_observations(n_species=3, years_per_species=(5, 10), seed=42)


@pytest.fixture
def fake_results(simulated):
    return build_results(simulated)
