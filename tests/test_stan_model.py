import os
import shutil

import cmdstanpy
import numpy as np
import pytest

from phenostan.defaults import HYPERPARAMETER_NAMES, SPECIES_PARAMETER_NAMES
from phenostan.exceptions import ModelFileError
from phenostan.model.results.recovery import compare_to_truth, coverage
from phenostan.model.stan import HINGE_MODEL_PATH
from phenostan.model.stan.stan_model import HingeStanModel, read_model_code
from phenostan.pipelines.run_workflow import check_args, parse_args, run_workflow
from phenostan.simulation import simulate_observations


def _cmdstan_available():
    try:
        cmdstanpy.cmdstan_path()
    except ValueError:
        return False
    return True


requires_cmdstan = pytest.mark.skipif(
    not _cmdstan_available(), reason="CmdStan is not installed."
)


# Model file
# --------------------------------------------------------------------


def test_bundled_model_exists():
    assert os.path.isfile(HINGE_MODEL_PATH)


def test_read_model_code():
    code = read_model_code()
    for block in ("data {", "parameters {", "model {", "generated quantities {"):
        assert block in code
    assert "y_rep" in code


def test_read_model_code_missing(tmp_path):
    with pytest.raises(ModelFileError):
        read_model_code(tmp_path / "missing.stan")


def test_missing_model_file(tmp_path):
    with pytest.raises(ModelFileError):
        HingeStanModel(stan_file=tmp_path / "missing.stan")


def test_model_file_error_is_file_not_found():
    assert issubclass(ModelFileError, FileNotFoundError)


class _RecordedInit:
    """Records the arguments given to CmdStanModel in place of compiling."""

    def __init__(self):
        self.kwargs = None

    def __call__(self, model, **kwargs):
        self.kwargs = kwargs


@pytest.fixture
def recorded_init(monkeypatch):
    recorder = _RecordedInit()
    def _init(model, **kwargs):
        recorder(model, **kwargs)

    monkeypatch.setattr(cmdstanpy.CmdStanModel, "__init__", _init)
    return recorder


def test_cached_executable_reused(tmp_path, recorded_init):
    shutil.copyfile(HINGE_MODEL_PATH, tmp_path / "hinge.stan")
    (tmp_path / "hinge").write_text("compiled")

    HingeStanModel(output_dir=str(tmp_path))
    assert recorded_init.kwargs["exe_file"] == str(tmp_path / "hinge")


def test_changed_program_is_recompiled(tmp_path, recorded_init):
    (tmp_path / "hinge.stan").write_text("parameters { real theta; }\n")
    (tmp_path / "hinge").write_text("compiled")

    model = HingeStanModel(output_dir=str(tmp_path))
    assert model.stan_program_path == str(tmp_path / "hinge.stan")
    assert (tmp_path / "hinge.stan").read_text() == read_model_code()
    assert recorded_init.kwargs["exe_file"] is None


def test_force_compile_ignores_cached_executable(tmp_path, recorded_init):
    shutil.copyfile(HINGE_MODEL_PATH, tmp_path / "hinge.stan")
    (tmp_path / "hinge").write_text("compiled")

    HingeStanModel(output_dir=str(tmp_path), force_compile=True)
    assert recorded_init.kwargs["exe_file"] is None
    assert recorded_init.kwargs["force_compile"]


def test_prior_inits(simulated):
    # Initial values do not depend on compilation
    model = object.__new__(HingeStanModel)
    inits = model.get_prior_inits(simulated.data, chains=3, seed=1)
    assert len(inits) == 3
    for init in inits:
        assert set(init) == {*HYPERPARAMETER_NAMES, *SPECIES_PARAMETER_NAMES}
        assert len(init["a"]) == simulated.data.n_species
        assert init["sigma_y"] >= 0


# Sampling
# --------------------------------------------------------------------


@requires_cmdstan
def test_fit_recovers_simulated_parameters(tmp_path):
    dataset = simulate_observations(n_species=10, seed=1025)
    model = HingeStanModel(output_dir=str(tmp_path))
    assert "y_rep" in model.code()

    res = model.sample(
        dataset.data, chains=2, iter_warmup=500, iter_sampling=500, seed=1025
    )
    assert res.n_chains == 2
    assert res.n_draws == 500
    assert res.inference_obj.posterior.attrs["breakpoint"] == 1980
    assert res.inference_obj.posterior_predictive["y_rep"].shape[-1] == len(dataset.data)

    table = compare_to_truth(res, dataset)
    summary = coverage(table)
    assert summary.loc["hyperparameter", "coverage"] >= 0.6
    assert summary.loc["a", "coverage"] >= 0.7
    assert summary.loc["b", "coverage"] >= 0.7
    assert np.isfinite(table["mean"]).all()

    # The cached executable is reused
    reused = HingeStanModel(output_dir=str(tmp_path))
    assert reused.exe_file == model.exe_file


@requires_cmdstan
def test_run_workflow_writes_outputs(tmp_path):
    args = parse_args(
        [
            "--output_dir",
            str(tmp_path),
            "--n_chains",
            "2",
            "--n_warmup",
            "200",
            "--n_samples",
            "200",
            "--n_species",
            "5",
            "--n_prior_draws",
            "10",
            "--sensitivity_scales",
            "1",
            "2",
        ]
    )
    check_args(args)
    outputs = run_workflow(args)
    assert set(outputs) == {"simulated_fit", "sensitivity", "report"}
    for path in outputs.values():
        assert os.path.isfile(path)
