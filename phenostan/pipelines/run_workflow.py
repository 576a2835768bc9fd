# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Runs the complete Bayesian workflow and writes a report.

The pipeline simulates data from known parameters, fits the hinge model to it,
runs diagnostics, and checks parameter recovery. It then draws from the priors
to check that they imply plausible days of year. If a file of real observations
is given, the model is fit to it as well. If sensitivity scales are given, the
model is refit with every prior scale multiplied by each factor. All results go
into an HTML report alongside NetCDF files of the fits.
"""

from __future__ import annotations

import argparse
import os.path

from typing import Optional, Sequence

import phenostan

from phenostan.data import load_observations
from phenostan.defaults import (
    DEFAULT_BREAKPOINT,
    DEFAULT_CHAINS,
    DEFAULT_HDI_PROB,
    DEFAULT_ITER_SAMPLING,
    DEFAULT_ITER_WARMUP,
    DEFAULT_N_PRIOR_DRAWS,
    DEFAULT_N_SPECIES,
    DEFAULT_PRIORS,
)
from phenostan.model.priors import (
    Priors,
    draw_prior_predictive,
    implausible_fraction,
    prior_predictive_quantiles,
)
from phenostan.model.results import recovery
from phenostan.model.stan.stan_model import HingeStanModel
from phenostan.plotting import (
    plot_hyperparameter_recovery,
    plot_observations,
    plot_posterior_predictive,
    plot_prior_predictive,
    plot_sensitivity,
    plot_species_recovery,
)
from phenostan.report import build_report, save_report
from phenostan.sensitivity import run_prior_sensitivity
from phenostan.simulation import simulate_observations

# Names of output files
REPORT_FILENAME = "report.html"
SIMULATED_FIT_FILENAME = "simulated_fit.nc"
OBSERVED_FIT_FILENAME = "observed_fit.nc"
SENSITIVITY_FILENAME = "prior_sensitivity.csv"


def define_parser() -> argparse.ArgumentParser:
    """Defines the parser for the workflow."""
    parser = argparse.ArgumentParser(
        description="Run the PhenoStan Bayesian workflow and write a report."
    )

    # A few required arguments
    required_group = parser.add_argument_group("required arguments")
    required_group.add_argument(
        "--output_dir",
        type=str,
        required=True,
        help="Path to the folder where the output will be saved.",
    )

    # Now some optionals
    optional_group = parser.add_argument_group("optional arguments")
    optional_group.add_argument(
        "--seed",
        type=int,
        default=1025,
        help="Random seed for reproducibility.",
    )
    optional_group.add_argument(
        "--n_chains",
        type=int,
        default=DEFAULT_CHAINS,
        help=f"Number of chains to run. Default = {DEFAULT_CHAINS}.",
    )
    optional_group.add_argument(
        "--n_warmup",
        type=int,
        default=DEFAULT_ITER_WARMUP,
        help=f"Number of warmup iterations. Default = {DEFAULT_ITER_WARMUP}.",
    )
    optional_group.add_argument(
        "--n_samples",
        type=int,
        default=DEFAULT_ITER_SAMPLING,
        help=(
            "Number of samples to draw after warmup. "
            f"Default = {DEFAULT_ITER_SAMPLING}."
        ),
    )
    optional_group.add_argument(
        "--n_species",
        type=int,
        default=DEFAULT_N_SPECIES,
        help=f"Number of simulated species. Default = {DEFAULT_N_SPECIES}.",
    )
    optional_group.add_argument(
        "--n_prior_draws",
        type=int,
        default=DEFAULT_N_PRIOR_DRAWS,
        help=(
            "Number of draws for the prior predictive check. "
            f"Default = {DEFAULT_N_PRIOR_DRAWS}."
        ),
    )
    optional_group.add_argument(
        "--breakpoint",
        type=int,
        default=DEFAULT_BREAKPOINT,
        help=f"Year of the hinge. Default = {DEFAULT_BREAKPOINT}.",
    )
    optional_group.add_argument(
        "--hdi_prob",
        type=float,
        default=DEFAULT_HDI_PROB,
        help=f"Probability of reported intervals. Default = {DEFAULT_HDI_PROB}.",
    )
    optional_group.add_argument(
        "--force_compile",
        action="store_true",
        help="Force compilation of the model even if it is already compiled.",
    )

    # Real observations
    data_group = parser.add_argument_group(
        "observations",
        description="Real observations to fit after the simulation study.",
    )
    data_group.add_argument(
        "--data_csv",
        type=str,
        default=None,
        help="Path to a CSV file of observations. If not given, only simulated "
        "data are fit.",
    )
    data_group.add_argument(
        "--species_col",
        type=str,
        default="species",
        help="Column of the CSV identifying species. Default = 'species'.",
    )
    data_group.add_argument(
        "--year_col",
        type=str,
        default="year",
        help="Column of the CSV holding calendar years. Default = 'year'.",
    )
    data_group.add_argument(
        "--doy_col",
        type=str,
        default="doy",
        help="Column of the CSV holding the day of year. Default = 'doy'.",
    )
    data_group.add_argument(
        "--sensitivity_scales",
        type=float,
        nargs="+",
        default=None,
        help="Factors applied to every prior scale for a prior sensitivity "
        "analysis. Skipped if not given.",
    )

    # Now the priors that can be overridden
    prior_group = parser.add_argument_group(
        "priors", description="Prior hyperparameter values."
    )
    for k, v in DEFAULT_PRIORS.items():
        prior_group.add_argument(
            f"--{k}",
            type=float,
            default=None,
            help=f"{k} hyperparameter. Default = {v}.",
        )

    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return define_parser().parse_args(argv)


def check_args(args: argparse.Namespace) -> None:
    """Checks command line arguments for validity."""
    # Output dir must exist
    if not os.path.exists(args.output_dir):
        raise ValueError(f"Output directory does not exist: {args.output_dir}.")

    # The data file must exist if given
    if args.data_csv is not None and not os.path.isfile(args.data_csv):
        raise ValueError(f"Observation file does not exist: {args.data_csv}.")

    # Seed must be a positive integer
    if args.seed <= 0:
        raise ValueError("Seed must be a positive integer.")

    # Counts must be positive integers
    for arg in ("n_chains", "n_warmup", "n_samples", "n_species", "n_prior_draws"):
        if getattr(args, arg) <= 0:
            raise ValueError(f"{arg} must be a positive integer.")

    # Interval probability must be in (0, 1)
    if not 0 < args.hdi_prob < 1:
        raise ValueError("hdi_prob must be between 0 and 1.")

    # Scale factors must be positive
    if args.sensitivity_scales is not None and any(
        scale <= 0 for scale in args.sensitivity_scales
    ):
        raise ValueError("All sensitivity scales must be positive.")

    # Prior scales must be positive
    for k in DEFAULT_PRIORS:
        if k.endswith("_sd") and getattr(args, k) is not None and getattr(args, k) <= 0:
            raise ValueError(f"{k} must be positive.")


def get_priors(args: argparse.Namespace) -> Priors:
    """Build the priors from the defaults and any command line overrides."""
    return Priors(
        **{k: v for k, v in vars(args).items() if k in DEFAULT_PRIORS and v is not None}
    )


def run_workflow(args: argparse.Namespace) -> dict[str, str]:
    """Run every step of the workflow.

    :param args: Checked command line arguments
    :type args: argparse.Namespace

    :returns: Paths of the files written, keyed by description
    :rtype: dict[str, str]
    """
    # Set up
    phenostan.manual_seed(args.seed)
    priors = get_priors(args)
    sample_kwargs = {
        "chains": args.n_chains,
        "iter_warmup": args.n_warmup,
        "iter_sampling": args.n_samples,
        "seed": args.seed,
    }
    outputs = {}
    sections = {}

    # Compile the model
    print("Compiling model...")
    model = HingeStanModel(output_dir=args.output_dir, force_compile=args.force_compile)

    # Simulate data from known parameters and fit it
    print("Simulating data...")
    dataset = simulate_observations(
        n_species=args.n_species, breakpoint=args.breakpoint, seed=args.seed
    )
    print("Fitting simulated data...")
    sim_res = model.sample(dataset.data, priors, **sample_kwargs)
    print("Running diagnostics...")
    _ = sim_res.diagnose()

    # Check recovery of the parameters
    print("Checking parameter recovery...")
    recovery_table = recovery.compare_to_truth(sim_res, dataset, hdi_prob=args.hdi_prob)
    sections["Parameter Recovery"] = [
        "Data were simulated from known parameters "
        f"({dataset.ground_truth!r}) and the model was fit to them.",
        plot_observations(dataset.data),
        "### Diagnostics",
        sim_res.diagnostics_table(),
        "### Hyperparameters",
        recovery_table.loc[recovery_table["group"] == "hyperparameter"],
        plot_hyperparameter_recovery(sim_res, dataset.ground_truth.to_dict()),
        "### Species-level parameters",
        recovery.coverage(recovery_table),
        plot_species_recovery(recovery_table, "a"),
        plot_species_recovery(recovery_table, "b"),
    ]
    outputs["simulated_fit"] = os.path.join(args.output_dir, SIMULATED_FIT_FILENAME)
    sim_res.save_netcdf(outputs["simulated_fit"])

    # Check the priors
    print("Drawing from the priors...")
    prior_draws = draw_prior_predictive(
        priors,
        n_draws=args.n_prior_draws,
        n_species=args.n_species,
        breakpoint=args.breakpoint,
        seed=args.seed,
    )
    sections["Prior Predictive Check"] = [
        f"Priors: `{priors!r}`\n\n"
        f"{implausible_fraction(prior_draws):.1%} of simulated observations fall "
        "outside the plausible range of days of year.",
        plot_prior_predictive(prior_draws, variable="mean_doy"),
        plot_prior_predictive(prior_draws, variable="y", n_curves=5),
        prior_predictive_quantiles(prior_draws),
    ]

    # Fit real data if provided
    fit_data = dataset.data
    if args.data_csv is not None:
        print("Fitting observations...")
        fit_data = load_observations(
            args.data_csv,
            species_col=args.species_col,
            year_col=args.year_col,
            doy_col=args.doy_col,
            breakpoint=args.breakpoint,
        )
        obs_res = model.sample(fit_data, priors, **sample_kwargs)
        print("Running diagnostics...")
        _ = obs_res.diagnose()
        sections["Observed Data"] = [
            plot_observations(fit_data),
            fit_data.summary(),
            "### Diagnostics",
            obs_res.diagnostics_table(),
            "### Hyperparameters",
            obs_res.hyperparameter_table(hdi_prob=args.hdi_prob),
            "### Posterior predictive check",
            plot_posterior_predictive(
                obs_res.posterior_predictive_table(hdi_prob=args.hdi_prob)
            ),
        ]
        outputs["observed_fit"] = os.path.join(args.output_dir, OBSERVED_FIT_FILENAME)
        obs_res.save_netcdf(outputs["observed_fit"])

    # Assess the sensitivity of the results to the priors
    if args.sensitivity_scales is not None:
        print("Running prior sensitivity analysis...")
        sensitivity_table = run_prior_sensitivity(
            model,
            fit_data,
            priors,
            scales=args.sensitivity_scales,
            hdi_prob=args.hdi_prob,
            **sample_kwargs,
        )
        sections["Prior Sensitivity"] = [
            "Every prior scale was multiplied by each factor and the model refit. "
            "`shift` is the change in the posterior mean in units of the baseline "
            "posterior standard deviation.",
            sensitivity_table,
            plot_sensitivity(sensitivity_table),
        ]
        outputs["sensitivity"] = os.path.join(args.output_dir, SENSITIVITY_FILENAME)
        sensitivity_table.to_csv(outputs["sensitivity"], index=False)

    # Write the report
    print("Writing report...")
    outputs["report"] = save_report(
        build_report(sections, stan_code=model.code()),
        os.path.join(args.output_dir, REPORT_FILENAME),
        title="PhenoStan Workflow Report",
    )

    return outputs


def main():
    """Main function to run the workflow."""
    # Parse command line arguments
    args = parse_args()

    # Check arguments
    check_args(args)

    # Run the workflow
    for name, path in run_workflow(args).items():
        print(f"Saved {name} to {path}")


if __name__ == "__main__":
    main()
