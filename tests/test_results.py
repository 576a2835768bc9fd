import warnings

import arviz as az

import numpy as np
import pytest

from conftest import build_results

from phenostan.defaults import HYPERPARAMETER_NAMES
from phenostan.exceptions import ConvergenceWarning
from phenostan.model.results.hmc import SampleResults


# Construction
# --------------------------------------------------------------------


def test_requires_posterior():
    idata = az.from_dict(observed_data={"y": np.zeros(3)})
    with pytest.raises(ValueError, match="posterior"):
        SampleResults(idata)


def test_counts(fake_results):
    assert fake_results.n_chains == 4
    assert fake_results.n_draws == 1000


def test_netcdf_round_trip(fake_results, tmp_path):
    path = tmp_path / "fit.nc"
    fake_results.save_netcdf(path)
    loaded = SampleResults.from_disk(path)
    np.testing.assert_allclose(
        loaded.inference_obj.posterior["mu_a"].values,
        fake_results.inference_obj.posterior["mu_a"].values,
    )


# Summaries
# --------------------------------------------------------------------


def test_summary_table_filters_by_regex(fake_results):
    table = fake_results.summary_table(r"^a\[")
    assert list(table.index) == ["a[1]", "a[2]", "a[3]"]


def test_summary_table_filters_by_substring(fake_results):
    table = fake_results.summary_table("b[", regex=False, kind="stats")
    assert list(table.index) == ["b[1]", "b[2]", "b[3]"]
    assert "mean" in table.columns
    assert "r_hat" not in table.columns


def test_summary_table_unfiltered(fake_results):
    table = fake_results.summary_table()
    assert len(table) == len(HYPERPARAMETER_NAMES) + 2 * 3


def test_hyperparameter_table(fake_results):
    table = fake_results.hyperparameter_table()
    assert list(table.index) == list(HYPERPARAMETER_NAMES)
    assert table.loc["mu_a", "mean"] == pytest.approx(150.0, abs=0.1)


def test_calculate_summaries_stores_groups(fake_results):
    fake_results.calculate_summaries()
    groups = fake_results.inference_obj.groups()
    assert "variable_summary_stats" in groups
    assert "variable_diagnostic_stats" in groups


# Diagnostics
# --------------------------------------------------------------------


def test_diagnose_clean_fit(fake_results):
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        sample_failures, variable_failures = fake_results.diagnose(silent=True)

    assert all(len(inds[0]) == 0 for inds in sample_failures.values())
    assert set(variable_failures) == {"r_hat", "ess_bulk", "ess_tail"}


def test_diagnose_flags_divergences_and_tree_depth(fake_results):
    stats = fake_results.inference_obj.sample_stats
    stats["diverging"][0, :5] = True
    stats["tree_depth"][1, :3] = 10

    with pytest.warns(ConvergenceWarning, match="diverged"):
        sample_failures, _ = fake_results.diagnose(silent=True)

    assert len(sample_failures["diverged"][0]) == 5
    assert len(sample_failures["max_tree_depth_reached"][0]) == 3


def test_diagnose_flags_unmixed_chains(simulated):
    results = build_results(simulated)
    results.inference_obj.posterior["mu_a"][0] += 50.0

    with pytest.warns(ConvergenceWarning, match="r_hat"):
        _, variable_failures = results.diagnose(silent=True)

    assert len(variable_failures["r_hat"]["mu_a"][0]) == 1


def test_diagnose_prints_report(fake_results, capsys):
    fake_results.diagnose()
    out = capsys.readouterr().out
    assert "Sample diagnostic tests results' summaries:" in out
    assert "diverged" in out


def test_single_chain_cannot_be_diagnosed(simulated):
    results = build_results(simulated, n_chains=1, n_draws=100)
    with pytest.raises(ValueError):
        results.calculate_diagnostics()


def test_diagnostics_table(fake_results):
    fake_results.inference_obj.sample_stats["diverging"][0, :2] = True
    table = fake_results.diagnostics_table()
    assert list(table.columns) == ["test", "n_failed", "n_tests"]
    rows = table.set_index("test")
    assert rows.loc["diverged", "n_failed"] == 2
    assert rows.loc["diverged", "n_tests"] == 4000
    assert rows.loc["low_ebfmi", "n_tests"] == 4
    assert rows.loc["r_hat", "n_tests"] == len(HYPERPARAMETER_NAMES) + 2 * 3


# Posterior predictive
# --------------------------------------------------------------------


def test_posterior_predictive_table(fake_results, simulated):
    table = fake_results.posterior_predictive_table()
    assert list(table.columns) == [
        "observed",
        "predicted_mean",
        "hdi_low",
        "hdi_high",
        "covered",
    ]
    assert len(table) == simulated.data.n_obs
    assert (table["hdi_low"] < table["hdi_high"]).all()
    assert table["covered"].mean() > 0.8
