# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Simulation of phenological data with known parameters.

This module implements the second step of the workflow: generating synthetic data
from hand-chosen ground-truth parameters so that the fitting procedure can be
checked for its ability to recover them. The generative process mirrors the hinge
model:

    1. Species intercepts and slopes are drawn once from normal distributions
       defined by the ground-truth hyperparameters.
    2. Each species is observed in a random subset of years.
    3. The observed day of year is the species intercept, plus the species slope
       times the hinge-transformed year, plus normally distributed noise.
"""

from __future__ import annotations

from typing import Optional, TYPE_CHECKING

import numpy as np
import pandas as pd

from phenostan import utils
from phenostan.data import hinge_years, PhenologyData
from phenostan.defaults import (
    DEFAULT_BREAKPOINT,
    DEFAULT_GROUND_TRUTH,
    DEFAULT_N_SPECIES,
    DEFAULT_YEAR_RANGE,
    DEFAULT_YEARS_PER_SPECIES,
    HYPERPARAMETER_NAMES,
)

if TYPE_CHECKING:
    from phenostan import custom_types


class GroundTruth:
    """Hyperparameters used to simulate data.

    :param mu_a: Mean species intercept (day of year). Defaults to 150.
    :param sigma_a: Standard deviation of species intercepts. Defaults to 15.
    :param mu_b: Mean species slope (days per year after the breakpoint).
        Defaults to -0.4.
    :param sigma_b: Standard deviation of species slopes. Defaults to 0.2.
    :param sigma_y: Residual standard deviation. Defaults to 5.

    :raises ValueError: If any standard deviation is negative
    """

    def __init__(
        self,
        mu_a: "custom_types.Float" = DEFAULT_GROUND_TRUTH["mu_a"],
        sigma_a: "custom_types.Float" = DEFAULT_GROUND_TRUTH["sigma_a"],
        mu_b: "custom_types.Float" = DEFAULT_GROUND_TRUTH["mu_b"],
        sigma_b: "custom_types.Float" = DEFAULT_GROUND_TRUTH["sigma_b"],
        sigma_y: "custom_types.Float" = DEFAULT_GROUND_TRUTH["sigma_y"],
    ):
        self.mu_a = float(mu_a)
        self.sigma_a = float(sigma_a)
        self.mu_b = float(mu_b)
        self.sigma_b = float(sigma_b)
        self.sigma_y = float(sigma_y)

        for name in ("sigma_a", "sigma_b", "sigma_y"):
            if getattr(self, name) < 0:
                raise ValueError(f"`{name}` must be non-negative.")

    def to_dict(self) -> dict[str, float]:
        """Get the hyperparameters as a dictionary in reporting order."""
        return {name: getattr(self, name) for name in HYPERPARAMETER_NAMES}

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v:g}" for k, v in self.to_dict().items())
        return f"GroundTruth({values})"


class SimulatedDataset:
    """Simulated observations together with the values that generated them.

    :ivar ground_truth: Hyperparameters used for simulation
    :ivar species_parameters: Table indexed by species id with columns ``a``
        (intercept) and ``b`` (slope)
    :ivar data: Simulated observations
    """

    def __init__(
        self,
        ground_truth: GroundTruth,
        species_parameters: pd.DataFrame,
        data: PhenologyData,
    ):
        self.ground_truth = ground_truth
        self.species_parameters = species_parameters
        self.data = data

    def true_values(self) -> dict[str, float]:
        """Get all true parameter values keyed by their posterior summary names.

        Hyperparameters are keyed by name (e.g., ``mu_a``), species-level
        parameters by name and species label (e.g., ``a[3]``), matching the row
        labels of ArviZ summaries.
        """
        truth = self.ground_truth.to_dict()
        for paramname in self.species_parameters.columns:
            for species, value in self.species_parameters[paramname].items():
                truth[f"{paramname}[{species}]"] = float(value)
        return truth


def _draw_species_parameters(
    ground_truth: GroundTruth, n_species: int, rng: np.random.Generator
) -> pd.DataFrame:
    """Draw species intercepts and slopes using the provided generator."""
    return pd.DataFrame(
        {
            "a": rng.normal(ground_truth.mu_a, ground_truth.sigma_a, size=n_species),
            "b": rng.normal(ground_truth.mu_b, ground_truth.sigma_b, size=n_species),
        },
        index=pd.Index(np.arange(1, n_species + 1), name="species"),
    )


def draw_species_parameters(
    ground_truth: Optional[GroundTruth] = None,
    n_species: "custom_types.Integer" = DEFAULT_N_SPECIES,
    seed: Optional["custom_types.Integer"] = None,
) -> pd.DataFrame:
    """Draw species intercepts and slopes from the ground-truth hyperparameters.

    :param ground_truth: Hyperparameters. Defaults to None (default ground truth).
    :type ground_truth: Optional[GroundTruth]
    :param n_species: Number of species. Defaults to 30.
    :type n_species: custom_types.Integer
    :param seed: Random seed. Defaults to None (use the global generator).
    :type seed: Optional[custom_types.Integer]

    :returns: Table indexed by 1-based species id with columns ``a`` and ``b``
    :rtype: pd.DataFrame
    """
    if n_species < 1:
        raise ValueError("`n_species` must be a positive integer.")
    ground_truth = GroundTruth() if ground_truth is None else ground_truth
    return _draw_species_parameters(ground_truth, int(n_species), utils.get_rng(seed))


def simulate_observations(
    ground_truth: Optional[GroundTruth] = None,
    n_species: "custom_types.Integer" = DEFAULT_N_SPECIES,
    year_range: tuple[int, int] = DEFAULT_YEAR_RANGE,
    years_per_species: tuple[int, int] = DEFAULT_YEARS_PER_SPECIES,
    breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
    seed: Optional["custom_types.Integer"] = None,
) -> SimulatedDataset:
    """Simulate phenological observations from known parameters.

    :param ground_truth: Hyperparameters. Defaults to None (default ground truth).
    :type ground_truth: Optional[GroundTruth]
    :param n_species: Number of species. Defaults to 30.
    :type n_species: custom_types.Integer
    :param year_range: First and last (inclusive) years that can be observed.
        Defaults to (1950, 2020).
    :type year_range: tuple[int, int]
    :param years_per_species: Minimum and maximum (inclusive) number of years in
        which each species is observed. Defaults to (10, 40).
    :type years_per_species: tuple[int, int]
    :param breakpoint: Year of the hinge. Defaults to 1980.
    :type breakpoint: custom_types.Integer
    :param seed: Random seed. Defaults to None (use the global generator).
    :type seed: Optional[custom_types.Integer]

    :returns: Simulated observations with the parameters that generated them
    :rtype: SimulatedDataset

    :raises ValueError: If the year range or the number of years per species is
        invalid

    Example:
        >>> dataset = simulate_observations(n_species=5, seed=42)
        >>> dataset.data.n_species
        5
    """
    # Check inputs
    if n_species < 1:
        raise ValueError("`n_species` must be a positive integer.")
    first_year, last_year = year_range
    if first_year > last_year:
        raise ValueError("The first year of `year_range` must not exceed the last.")
    available_years = np.arange(first_year, last_year + 1)
    min_years, max_years = years_per_species
    if not 1 <= min_years <= max_years <= len(available_years):
        raise ValueError(
            "`years_per_species` must satisfy 1 <= min <= max <= number of years "
            f"in `year_range` ({len(available_years)})."
        )

    # Get the ground truth and generator, then draw parameters for each species
    ground_truth = GroundTruth() if ground_truth is None else ground_truth
    rng = utils.get_rng(seed)
    species_parameters = _draw_species_parameters(ground_truth, int(n_species), rng)

    # Simulate observations for each species
    records = []
    for species, (a, b) in species_parameters[["a", "b"]].iterrows():

        # Choose the years in which this species is observed
        n_years = rng.integers(min_years, max_years + 1)
        years = np.sort(rng.choice(available_years, size=n_years, replace=False))

        # Day of year is the hinge line plus noise
        doy = (
            a
            + b * hinge_years(years, breakpoint)
            + rng.normal(0.0, ground_truth.sigma_y, size=n_years)
        )
        records.append(pd.DataFrame({"species": species, "year": years, "doy": doy}))

    return SimulatedDataset(
        ground_truth=ground_truth,
        species_parameters=species_parameters,
        data=PhenologyData(pd.concat(records, ignore_index=True), breakpoint=breakpoint),
    )
