# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Plotting utilities for PhenoStan.

This subpackage provides the figures used at each step of the workflow. The
plotting utilities are built on top of holoviews and hvplot, returning
interactive visualizations that can be composed or embedded in a report.

Key Functionality:

    - Observed or simulated days of year by species
    - Recovery of known parameters from simulated data
    - Prior and posterior predictive checks
    - Prior sensitivity of the hyperparameters
    - An interactive dashboard for tuning priors
"""

from .plotting import (
    plot_hyperparameter_recovery,
    plot_observations,
    plot_posterior_predictive,
    plot_prior_predictive,
    plot_sensitivity,
    plot_species_recovery,
)
from .prior_predictive import PriorPredictiveCheck
