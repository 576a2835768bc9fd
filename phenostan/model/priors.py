# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Priors of the hinge model and prior predictive simulation.

The hinge model places normal priors on the mean species intercept (``mu_a``) and
mean species slope (``mu_b``), and half-normal priors on the standard deviations
``sigma_a``, ``sigma_b``, and ``sigma_y``. The values defining these priors are
passed to Stan as data, meaning that the same compiled program can be reused to
fit the model under different priors (see :py:mod:`phenostan.sensitivity`).

This module also implements the third step of the workflow: drawing hypothetical
days of year from the model using only its priors, to assess whether the outcomes
implied by the priors are scientifically plausible.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Iterator, Optional, Sequence, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import pandas as pd
import xarray as xr

from phenostan import utils
from phenostan.data import hinge_years
from phenostan.defaults import (
    DEFAULT_BREAKPOINT,
    DEFAULT_N_PRIOR_DRAWS,
    DEFAULT_N_SPECIES,
    DEFAULT_PRIORS,
    DEFAULT_YEAR_RANGE,
    PLAUSIBLE_DOY_RANGE,
)

if TYPE_CHECKING:
    from phenostan import custom_types


class Priors(Mapping):
    """Read-only mapping of prior hyperparameter names to values.

    :param overrides: Values replacing the defaults in
        :py:data:`phenostan.defaults.DEFAULT_PRIORS`. Names must be among the
        default names.

    :raises ValueError: If an unknown prior name is given
    :raises ValueError: If a prior scale (any name ending in ``_sd``) is not
        strictly positive

    Example:
        >>> priors = Priors(prior_mu_b_sd=0.5)
        >>> priors["prior_mu_b_sd"]
        0.5
        >>> priors.scaled(2.0)["prior_mu_b_sd"]
        1.0
    """

    def __init__(self, **overrides: "custom_types.Float"):

        # No unknown names
        if unknown := set(overrides) - set(DEFAULT_PRIORS):
            raise ValueError(
                f"Unknown prior hyperparameters: {', '.join(sorted(unknown))}. "
                f"Options are: {', '.join(DEFAULT_PRIORS)}."
            )

        # Combine with the defaults
        self._values = {
            name: float(overrides.get(name, default))
            for name, default in DEFAULT_PRIORS.items()
        }

        # Scales must be positive
        for name in self.scale_names:
            if not self._values[name] > 0:
                raise ValueError(
                    f"Prior scale '{name}' must be positive. Got {self._values[name]}."
                )

    def __getitem__(self, name: str) -> float:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        values = ", ".join(f"{k}={v:g}" for k, v in self._values.items())
        return f"Priors({values})"

    def to_dict(self) -> dict[str, float]:
        """Get the prior hyperparameters as a plain dictionary."""
        return dict(self._values)

    def updated(self, **overrides: "custom_types.Float") -> "Priors":
        """Get a copy of these priors with some values replaced."""
        return Priors(**{**self._values, **overrides})

    def scaled(self, factor: "custom_types.Float") -> "Priors":
        """Get a copy of these priors with every scale multiplied by a factor.

        Prior means are unchanged. A factor above 1 widens all priors; a factor
        below 1 narrows them.

        :param factor: Multiplier for all prior scales. Must be positive.
        :type factor: custom_types.Float

        :returns: New priors
        :rtype: Priors

        :raises ValueError: If the factor is not positive
        """
        if not factor > 0:
            raise ValueError(f"Scale factor must be positive. Got {factor}.")
        return self.updated(
            **{name: self._values[name] * factor for name in self.scale_names}
        )

    @property
    def scale_names(self) -> tuple[str, ...]:
        """Names of the prior hyperparameters that are scales."""
        return tuple(name for name in self._values if name.endswith("_sd"))


def _half_normal(
    rng: np.random.Generator, scale: float, size: Union[int, tuple[int, ...]]
) -> npt.NDArray[np.floating]:
    """Draw from a half-normal distribution."""
    return np.abs(rng.normal(0.0, scale, size=size))


def draw_prior_predictive(
    priors: Optional[Priors] = None,
    years: Optional[Union[npt.NDArray, Sequence]] = None,
    n_draws: "custom_types.Integer" = DEFAULT_N_PRIOR_DRAWS,
    n_species: "custom_types.Integer" = DEFAULT_N_SPECIES,
    breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
    seed: Optional["custom_types.Integer"] = None,
) -> xr.Dataset:
    """Draw hypothetical phenological data from the priors of the hinge model.

    For each draw, the hyperparameters are sampled from their priors, species
    intercepts and slopes are sampled given the hyperparameters, and days of year
    are predicted for every species in every year.

    :param priors: Priors to draw from. Defaults to None (default priors).
    :type priors: Optional[Priors]
    :param years: Calendar years at which to predict. Defaults to None, meaning
        every year in :py:data:`~phenostan.defaults.DEFAULT_YEAR_RANGE`.
    :type years: Optional[Union[npt.NDArray, Sequence]]
    :param n_draws: Number of prior draws. Defaults to 100.
    :type n_draws: custom_types.Integer
    :param n_species: Number of species per draw. Defaults to 30.
    :type n_species: custom_types.Integer
    :param breakpoint: Year of the hinge. Defaults to 1980.
    :type breakpoint: custom_types.Integer
    :param seed: Random seed. Defaults to None (use the global generator).
    :type seed: Optional[custom_types.Integer]

    :returns: Dataset with coordinates ``draw``, ``species`` (1-based), and
        ``year``, holding the hyperparameter draws (dimension ``draw``), the
        species intercepts ``a`` and slopes ``b`` (``draw`` x ``species``), the
        expected day of year of an average species ``mean_doy`` (``draw`` x
        ``year``), the expected day of year of each species ``mu`` and a noisy
        observation ``y`` (``draw`` x ``species`` x ``year``)
    :rtype: xr.Dataset

    :raises ValueError: If ``n_draws`` or ``n_species`` is not positive
    """
    if n_draws < 1 or n_species < 1:
        raise ValueError("`n_draws` and `n_species` must be positive integers.")

    # Set defaults
    priors = Priors() if priors is None else priors
    if years is None:
        years = np.arange(DEFAULT_YEAR_RANGE[0], DEFAULT_YEAR_RANGE[1] + 1)
    years = np.asarray(years)
    offsets = hinge_years(years, breakpoint)
    rng = utils.get_rng(seed)

    # Draw the hyperparameters
    mu_a = rng.normal(priors["prior_mu_a_mean"], priors["prior_mu_a_sd"], size=n_draws)
    sigma_a = _half_normal(rng, priors["prior_sigma_a_sd"], n_draws)
    mu_b = rng.normal(priors["prior_mu_b_mean"], priors["prior_mu_b_sd"], size=n_draws)
    sigma_b = _half_normal(rng, priors["prior_sigma_b_sd"], n_draws)
    sigma_y = _half_normal(rng, priors["prior_sigma_y_sd"], n_draws)

    # Draw the species-level parameters
    a = rng.normal(mu_a[:, None], sigma_a[:, None], size=(n_draws, n_species))
    b = rng.normal(mu_b[:, None], sigma_b[:, None], size=(n_draws, n_species))

    # Predicted days of year
    mean_doy = mu_a[:, None] + mu_b[:, None] * offsets[None]
    mu = a[..., None] + b[..., None] * offsets[None, None]
    y = rng.normal(mu, sigma_y[:, None, None])

    return xr.Dataset(
        {
            "mu_a": ("draw", mu_a),
            "sigma_a": ("draw", sigma_a),
            "mu_b": ("draw", mu_b),
            "sigma_b": ("draw", sigma_b),
            "sigma_y": ("draw", sigma_y),
            "a": (("draw", "species"), a),
            "b": (("draw", "species"), b),
            "mean_doy": (("draw", "year"), mean_doy),
            "mu": (("draw", "species", "year"), mu),
            "y": (("draw", "species", "year"), y),
        },
        coords={
            "draw": np.arange(n_draws),
            "species": np.arange(1, n_species + 1),
            "year": years,
        },
        attrs={"breakpoint": int(breakpoint)},
    )


def implausible_fraction(
    prior_draws: xr.Dataset,
    doy_range: tuple[float, float] = PLAUSIBLE_DOY_RANGE,
    variable: str = "y",
) -> float:
    """Calculate the fraction of prior predictions outside a plausible range.

    :param prior_draws: Output of :py:func:`draw_prior_predictive`
    :type prior_draws: xr.Dataset
    :param doy_range: Lowest and highest plausible day of year. Defaults to (1, 366).
    :type doy_range: tuple[float, float]
    :param variable: Which prediction to evaluate. Defaults to "y" (noisy
        observations).
    :type variable: str

    :returns: Fraction in [0, 1] of predictions outside ``doy_range``
    :rtype: float
    """
    low, high = doy_range
    if low >= high:
        raise ValueError("The lower bound of `doy_range` must be below the upper bound.")
    values = prior_draws[variable].values
    return float(np.mean((values < low) | (values > high)))


def prior_predictive_quantiles(
    prior_draws: xr.Dataset,
    quantiles: Sequence[float] = (0.05, 0.5, 0.95),
    variable: str = "y",
) -> pd.DataFrame:
    """Tabulate quantiles of predicted days of year by year.

    :param prior_draws: Output of :py:func:`draw_prior_predictive`
    :type prior_draws: xr.Dataset
    :param quantiles: Quantiles to calculate. Defaults to (0.05, 0.5, 0.95).
    :type quantiles: Sequence[float]
    :param variable: Which prediction to summarize. Defaults to "y".
    :type variable: str

    :returns: Table indexed by year with one column per quantile
    :rtype: pd.DataFrame
    """
    reduce_dims = [dim for dim in prior_draws[variable].dims if dim != "year"]
    return (
        prior_draws[variable]
        .quantile(list(quantiles), dim=reduce_dims)
        .to_pandas()
        .T.rename(columns=lambda q: f"q{q:g}")
    )
