import os

from types import SimpleNamespace

import numpy as np
import pandas as pd
import pytest

from conftest import build_results

from phenostan.model.stan.stan_model import read_model_code
from phenostan.pipelines import run_workflow
from phenostan.simulation import GroundTruth


class WorkflowModel:
    """Stands in for a compiled model; fits are centered on the default truth."""

    instances = []

    def __init__(self, output_dir, force_compile=False):
        self.output_dir = output_dir
        self.fitted = []
        WorkflowModel.instances.append(self)

    def sample(self, data, priors, **kwargs):
        self.fitted.append((data, priors, kwargs))
        truth = GroundTruth()
        dataset = SimpleNamespace(
            data=data,
            ground_truth=truth,
            species_parameters=pd.DataFrame(
                {
                    "a": np.full(data.n_species, truth.mu_a),
                    "b": np.full(data.n_species, truth.mu_b),
                }
            ),
        )
        return build_results(dataset, n_draws=200, seed=len(self.fitted))

    def code(self):
        return read_model_code()


@pytest.fixture
def workflow_model(monkeypatch):
    WorkflowModel.instances = []
    monkeypatch.setattr(run_workflow, "HingeStanModel", WorkflowModel)
    return WorkflowModel


@pytest.fixture
def observations_csv(tmp_path):
    years = np.arange(1970, 1996, 5)
    table = pd.DataFrame(
        {
            "taxon": np.repeat(["oak", "ash"], len(years)),
            "yr": np.tile(years, 2),
            "first_flower": np.linspace(110, 140, 2 * len(years)),
        }
    )
    path = tmp_path / "observations.csv"
    table.to_csv(path, index=False)
    return path


def test_run_workflow_simulated_only(tmp_path, workflow_model):
    args = run_workflow.parse_args(
        ["--output_dir", str(tmp_path), "--n_species", "4", "--n_prior_draws", "20"]
    )
    run_workflow.check_args(args)
    outputs = run_workflow.run_workflow(args)

    assert set(outputs) == {"simulated_fit", "report"}
    (model,) = workflow_model.instances
    assert len(model.fitted) == 1
    assert model.fitted[0][0].n_species == 4


def test_run_workflow_with_observations(tmp_path, workflow_model, observations_csv):
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    args = run_workflow.parse_args(
        [
            "--output_dir",
            str(out_dir),
            "--n_species",
            "3",
            "--n_prior_draws",
            "20",
            "--data_csv",
            str(observations_csv),
            "--species_col",
            "taxon",
            "--year_col",
            "yr",
            "--doy_col",
            "first_flower",
            "--sensitivity_scales",
            "0.5",
            "1",
            "--prior_mu_b_sd",
            "1.5",
        ]
    )
    run_workflow.check_args(args)
    outputs = run_workflow.run_workflow(args)

    # Every output is written
    assert outputs == {
        "simulated_fit": str(out_dir / run_workflow.SIMULATED_FIT_FILENAME),
        "observed_fit": str(out_dir / run_workflow.OBSERVED_FIT_FILENAME),
        "sensitivity": str(out_dir / run_workflow.SENSITIVITY_FILENAME),
        "report": str(out_dir / run_workflow.REPORT_FILENAME),
    }
    for path in outputs.values():
        assert os.path.isfile(path)

    # Simulated fit, observed fit, then one refit per scale on the observations
    (model,) = workflow_model.instances
    fitted_data = [fit[0] for fit in model.fitted]
    assert len(fitted_data) == 4
    assert fitted_data[0].n_species == 3
    for data in fitted_data[1:]:
        assert list(data.species_labels) == ["ash", "oak"]
        assert data.n_obs == 12
    assert [fit[1]["prior_mu_b_sd"] for fit in model.fitted] == [1.5, 1.5, 0.75, 1.5]
    assert all(fit[2]["chains"] == args.n_chains for fit in model.fitted)

    # The sensitivity table covers both scales
    sensitivity = pd.read_csv(outputs["sensitivity"])
    assert sorted(sensitivity["scale"].unique()) == [0.5, 1.0]

    # The report has a section for the observations
    report = open(outputs["report"], encoding="utf-8").read()
    for anchor in (
        "parameter-recovery",
        "prior-predictive-check",
        "observed-data",
        "prior-sensitivity",
    ):
        assert anchor in report
