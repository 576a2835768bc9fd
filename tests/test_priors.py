import numpy as np
import pytest

from phenostan.defaults import DEFAULT_PRIORS
from phenostan.model.priors import (
    Priors,
    draw_prior_predictive,
    implausible_fraction,
    prior_predictive_quantiles,
)


# Priors container
# --------------------------------------------------------------------


def test_priors_defaults_and_overrides():
    priors = Priors(prior_mu_b_sd=0.5)
    assert len(priors) == len(DEFAULT_PRIORS)
    assert priors["prior_mu_b_sd"] == 0.5
    assert priors["prior_mu_a_mean"] == DEFAULT_PRIORS["prior_mu_a_mean"]
    assert dict(priors) == priors.to_dict()


def test_priors_reject_unknown_names():
    with pytest.raises(ValueError, match="Unknown"):
        Priors(prior_banana_sd=1.0)


@pytest.mark.parametrize("value", [0.0, -1.0])
def test_priors_reject_nonpositive_scales(value):
    with pytest.raises(ValueError, match="positive"):
        Priors(prior_sigma_y_sd=value)


def test_scaled_changes_only_scales():
    priors = Priors()
    scaled = priors.scaled(2.0)
    for name in priors:
        if name.endswith("_sd"):
            assert scaled[name] == pytest.approx(2 * priors[name])
        else:
            assert scaled[name] == priors[name]


def test_scaled_rejects_nonpositive_factor():
    with pytest.raises(ValueError):
        Priors().scaled(0.0)


def test_updated_returns_copy():
    priors = Priors()
    updated = priors.updated(prior_mu_a_mean=100.0)
    assert updated["prior_mu_a_mean"] == 100.0
    assert priors["prior_mu_a_mean"] == DEFAULT_PRIORS["prior_mu_a_mean"]


# Prior predictive draws
# --------------------------------------------------------------------


def test_prior_predictive_dims():
    years = np.arange(1970, 1991)
    draws = draw_prior_predictive(years=years, n_draws=20, n_species=4, seed=1)
    assert dict(draws.sizes) == {"draw": 20, "species": 4, "year": len(years)}
    assert draws["mu_a"].dims == ("draw",)
    assert draws["a"].dims == ("draw", "species")
    assert draws["mean_doy"].dims == ("draw", "year")
    assert draws["y"].dims == ("draw", "species", "year")
    assert list(draws.species.values) == [1, 2, 3, 4]
    assert draws.attrs["breakpoint"] == 1980


def test_prior_predictive_scales_are_positive():
    draws = draw_prior_predictive(n_draws=200, n_species=2, seed=2)
    for name in ("sigma_a", "sigma_b", "sigma_y"):
        assert (draws[name].values >= 0).all()


def test_prior_predictive_flat_before_breakpoint():
    draws = draw_prior_predictive(
        years=[1960, 1970, 1980], n_draws=10, n_species=3, seed=3
    )
    mu = draws["mu"].values
    np.testing.assert_allclose(mu[..., 0], mu[..., 2])
    np.testing.assert_allclose(mu[..., 0], draws["a"].values)


def test_prior_predictive_is_reproducible():
    first = draw_prior_predictive(n_draws=5, n_species=2, seed=9)
    second = draw_prior_predictive(n_draws=5, n_species=2, seed=9)
    np.testing.assert_array_equal(first["y"].values, second["y"].values)


@pytest.mark.parametrize("kwargs", [{"n_draws": 0}, {"n_species": 0}])
def test_prior_predictive_rejects_empty(kwargs):
    with pytest.raises(ValueError):
        draw_prior_predictive(**kwargs)


# Plausibility
# --------------------------------------------------------------------


def test_implausible_fraction_bounds():
    draws = draw_prior_predictive(n_draws=50, n_species=5, seed=4)
    fraction = implausible_fraction(draws)
    assert 0.0 <= fraction <= 1.0


def test_implausible_fraction_grows_with_wider_priors():
    narrow = draw_prior_predictive(Priors().scaled(0.1), n_draws=200, seed=5)
    wide = draw_prior_predictive(Priors().scaled(10.0), n_draws=200, seed=5)
    assert implausible_fraction(narrow) < implausible_fraction(wide)


def test_implausible_fraction_rejects_bad_range():
    draws = draw_prior_predictive(n_draws=2, n_species=2, seed=6)
    with pytest.raises(ValueError):
        implausible_fraction(draws, doy_range=(366.0, 1.0))


def test_prior_predictive_quantiles():
    years = np.arange(1975, 1986)
    draws = draw_prior_predictive(years=years, n_draws=100, n_species=5, seed=7)
    table = prior_predictive_quantiles(draws)
    assert list(table.columns) == ["q0.05", "q0.5", "q0.95"]
    assert list(table.index) == list(years)
    assert (table["q0.05"] <= table["q0.5"]).all()
    assert (table["q0.5"] <= table["q0.95"]).all()
