# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Default configuration values for PhenoStan.

This module centralizes default values used across the package, including the
structure of the simulated study, the ground-truth values used to simulate data,
the default priors of the hinge model, Stan compilation and sampling settings,
and diagnostic thresholds.

The module is organized into logical groups covering:
    - Study design (breakpoint, years, species)
    - Simulation ground truth
    - Prior hyperparameters
    - Stan model compilation and execution settings
    - Diagnostic thresholds for model validation

Default values cannot be programmatically altered. Most of them can be overridden
from the command line of :py:mod:`phenostan.pipelines.run_workflow`.
"""

import os

from typing import Any

# Study design
DEFAULT_BREAKPOINT: int = 1980
"""Year at which the hinge occurs.

Before this year, the expected day of year is constant for a species. After it,
the expected day of year changes linearly with the years elapsed since the
breakpoint.

:type: int
"""

DEFAULT_YEAR_RANGE: tuple[int, int] = (1950, 2020)
"""First and last (inclusive) calendar years available for simulated observations.

:type: tuple[int, int]
"""

DEFAULT_N_SPECIES: int = 30
"""Default number of species in a simulated dataset.

:type: int
"""

DEFAULT_YEARS_PER_SPECIES: tuple[int, int] = (10, 40)
"""Minimum and maximum (inclusive) number of observed years per simulated species.

:type: tuple[int, int]
"""

# Simulation ground truth
DEFAULT_GROUND_TRUTH: dict[str, float] = {
    "mu_a": 150.0,
    "sigma_a": 15.0,
    "mu_b": -0.4,
    "sigma_b": 0.2,
    "sigma_y": 5.0,
}
"""Ground-truth hyperparameters used to simulate data.

``mu_a`` and ``sigma_a`` are the mean and standard deviation of the species
intercepts (day of year before the breakpoint). ``mu_b`` and ``sigma_b`` are the
mean and standard deviation of the species slopes (days per year after the
breakpoint). ``sigma_y`` is the residual standard deviation.

:type: dict[str, float]
"""

HYPERPARAMETER_NAMES: tuple[str, ...] = ("mu_a", "sigma_a", "mu_b", "sigma_b", "sigma_y")
"""Names of the hyperparameters of the hinge model, in reporting order.

:type: tuple[str, ...]
"""

SPECIES_PARAMETER_NAMES: tuple[str, ...] = ("a", "b")
"""Names of the species-level parameters of the hinge model.

:type: tuple[str, ...]
"""

# Priors
DEFAULT_PRIORS: dict[str, float] = {
    "prior_mu_a_mean": 188.0,
    "prior_mu_a_sd": 50.0,
    "prior_sigma_a_sd": 20.0,
    "prior_mu_b_mean": 0.0,
    "prior_mu_b_sd": 2.0,
    "prior_sigma_b_sd": 1.0,
    "prior_sigma_y_sd": 10.0,
}
"""Default values of the prior hyperparameters.

``mu_a`` and ``mu_b`` have normal priors with the given means and standard
deviations. ``sigma_a``, ``sigma_b``, and ``sigma_y`` have half-normal priors
with the given scales. All values are passed to Stan as data.

:type: dict[str, float]
"""

DEFAULT_SENSITIVITY_SCALES: tuple[float, ...] = (0.5, 1.0, 2.0)
"""Factors applied to every prior scale during prior sensitivity analysis.

:type: tuple[float, ...]
"""

PLAUSIBLE_DOY_RANGE: tuple[float, float] = (1.0, 366.0)
"""Range of days of year considered scientifically plausible.

:type: tuple[float, float]
"""

DEFAULT_N_PRIOR_DRAWS: int = 100
"""Default number of draws made in a prior predictive check.

:type: int
"""

# Defaults for the Stan model
DEFAULT_FORCE_COMPILE: bool = False
"""Default setting for forcing Stan model recompilation.

When False, uses cached compiled models when available. When True,
forces recompilation even if a cached version exists.

:type: bool
"""

DEFAULT_STANC_OPTIONS: dict[str, Any] = {"warn-pedantic": True, "O1": True}
"""Default options passed to the Stan compiler (stanc).

:type: dict[str, bool]
"""

DEFAULT_CPP_OPTIONS: dict[str, Any] = {"STAN_THREADS": True}
"""Default C++ compilation options for Stan models.

:type: dict[str, bool]
"""

DEFAULT_MODEL_NAME: str = "hinge"
"""Default name of the compiled Stan executable.

:type: str
"""

DEFAULT_CHAINS: int = 4
"""Default number of MCMC chains.

:type: int
"""

DEFAULT_PARALLEL_CHAINS: int = os.cpu_count() or 1
"""Default number of chains run in parallel. Uses all available cores.

:type: int
"""

DEFAULT_ITER_WARMUP: int = 1000
"""Default number of warmup iterations per chain.

:type: int
"""

DEFAULT_ITER_SAMPLING: int = 1000
"""Default number of post-warmup draws per chain.

:type: int
"""

DEFAULT_MAX_TREEDEPTH: int = 10
"""Maximum tree depth used by Stan's NUTS sampler unless otherwise specified.

:type: int
"""

DEFAULT_HDI_PROB: float = 0.94
"""Probability mass of the highest density intervals reported in summaries.

:type: float
"""

# Defaults for Stan diagnostics
DEFAULT_EBFMI_THRESH: float = 0.2
"""Default threshold for Energy Bayesian Fraction of Missing Information (E-BFMI).

Values below this threshold may indicate inefficient sampling and
potential bias in MCMC results.

:type: float
"""

DEFAULT_ESS_THRESH: int = 100  # Per chain
"""Default threshold for Effective Sample Size (ESS) per chain.

:type: int
"""

DEFAULT_RHAT_THRESH: float = 1.01
"""Default threshold for R-hat convergence diagnostic.

:type: float
"""
