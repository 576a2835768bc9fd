import holoviews as hv
import pandas as pd
import panel as pn
import pytest

from phenostan.model.priors import Priors, draw_prior_predictive
from phenostan.model.results.recovery import compare_to_truth
from phenostan.plotting import (
    PriorPredictiveCheck,
    plot_hyperparameter_recovery,
    plot_observations,
    plot_posterior_predictive,
    plot_prior_predictive,
    plot_sensitivity,
    plot_species_recovery,
)


@pytest.fixture
def prior_draws():
    return draw_prior_predictive(
        years=list(range(1970, 1991)), n_draws=10, n_species=3, seed=1
    )


def test_plot_observations(small_data):
    assert isinstance(plot_observations(small_data), hv.Overlay)


@pytest.mark.parametrize("parameter", ["a", "b"])
def test_plot_species_recovery(fake_results, simulated, parameter):
    table = compare_to_truth(fake_results, simulated)
    plot = plot_species_recovery(table, parameter)
    assert isinstance(plot, hv.Overlay)


def test_plot_species_recovery_unknown_parameter(fake_results, simulated):
    table = compare_to_truth(fake_results, simulated)
    with pytest.raises(ValueError):
        plot_species_recovery(table, "c")


def test_plot_hyperparameter_recovery(fake_results, simulated):
    layout = plot_hyperparameter_recovery(
        fake_results, simulated.ground_truth.to_dict()
    )
    assert isinstance(layout, hv.Layout)
    assert len(layout) == 5


@pytest.mark.parametrize("variable", ["mean_doy", "mu", "y"])
def test_plot_prior_predictive(prior_draws, variable):
    plot = plot_prior_predictive(prior_draws, variable=variable, n_curves=5)
    assert isinstance(plot, hv.Overlay)


def test_plot_prior_predictive_unknown_variable(prior_draws):
    with pytest.raises(ValueError):
        plot_prior_predictive(prior_draws, variable="a")


def test_plot_posterior_predictive(fake_results):
    plot = plot_posterior_predictive(fake_results.posterior_predictive_table())
    assert isinstance(plot, hv.Overlay)


def test_plot_sensitivity():
    table = pd.DataFrame(
        {
            "scale": [0.5, 1.0, 2.0] * 2,
            "parameter": ["mu_a"] * 3 + ["mu_b"] * 3,
            "mean": [150.0, 151.0, 152.0, -0.4, -0.3, -0.2],
            "sd": [1.0, 1.0, 1.0, 0.1, 0.1, 0.1],
            "hdi_low": [148.0, 149.0, 150.0, -0.6, -0.5, -0.4],
            "hdi_high": [152.0, 153.0, 154.0, -0.2, -0.1, 0.0],
        }
    )
    layout = plot_sensitivity(table)
    assert isinstance(layout, hv.Layout)
    assert len(layout) == 2


# Interactive prior predictive check
# --------------------------------------------------------------------


@pytest.fixture
def check():
    return PriorPredictiveCheck(
        Priors(prior_mu_b_sd=0.5), years=list(range(1970, 1991)), n_species=3
    )


def test_prior_predictive_check_widgets(check):
    assert len(check.float_sliders) == 7
    assert check.float_sliders["prior_mu_b_sd"].value == 0.5
    assert isinstance(check.fig.object, hv.Overlay)
    assert "%" in check.plausibility.object
    assert isinstance(check.display(), pn.Row)


def test_prior_predictive_check_redraws_with_new_priors(check):
    check.float_sliders["prior_mu_a_mean"].value = 100.0
    check._full_pipeline()  # pylint: disable=protected-access
    assert check.priors["prior_mu_a_mean"] == 100.0
    assert float(check.prior_draws["mu_a"].mean()) == pytest.approx(100.0, abs=20.0)


def test_prior_predictive_check_changes_view(check):
    check.variable_dropdown.value = "Observations"
    check.curve_entry.value = 2
    check._update_plot()  # pylint: disable=protected-access
    assert "Observations" in check.variable_dropdown.value
    assert isinstance(check.fig.object, hv.Overlay)
