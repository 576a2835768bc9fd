# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Containers and loaders for phenological observations.

Observations are records of a species, the calendar year of observation, and the
day of year (doy) on which the phenological event was recorded. This module
validates such records, applies the hinge transformation to the years, and
assembles the data dictionary expected by the bundled Stan program.

Both simulated data (see :py:mod:`phenostan.simulation`) and real data loaded
from a CSV file (see :py:func:`load_observations`) are represented by the same
:py:class:`PhenologyData` class, so the rest of the workflow is agnostic to the
source of the records.
"""

from __future__ import annotations

import os
import warnings

from typing import Optional, Sequence, TYPE_CHECKING, Union

import numpy as np
import numpy.typing as npt
import pandas as pd

from phenostan import utils
from phenostan.defaults import DEFAULT_BREAKPOINT
from phenostan.exceptions import DataFormatError

if TYPE_CHECKING:
    from phenostan import custom_types
    from phenostan.model.priors import Priors

priors_module = utils.lazy_import("phenostan.model.priors")

# Columns that every observation table must have
REQUIRED_COLUMNS = ("species", "year", "doy")


def hinge_years(
    year: Union[npt.NDArray, Sequence, "custom_types.Float"],
    breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
) -> npt.NDArray[np.floating]:
    """Transform calendar years into hinge-model year offsets.

    Years before the breakpoint are mapped to 0, such that the expected day of
    year is flat (mean-only) before the breakpoint. Years at or after the
    breakpoint are mapped to the number of years elapsed since the breakpoint.

    :param year: Calendar years
    :type year: Union[npt.NDArray, Sequence, custom_types.Float]
    :param breakpoint: Year at which the trend starts. Defaults to 1980.
    :type breakpoint: custom_types.Integer

    :returns: Year offsets as floats with the same shape as ``year``
    :rtype: npt.NDArray[np.floating]

    Example:
        >>> hinge_years([1970, 1980, 1995])
        array([ 0.,  0., 15.])
    """
    offset = np.asarray(year, dtype=float) - breakpoint
    return np.where(offset < 0, 0.0, offset)


class PhenologyData:
    """Validated set of phenological observations.

    :param observations: Table with one row per observation. Must contain the
        columns ``species``, ``year``, and ``doy``. Additional columns are kept.
    :type observations: pd.DataFrame
    :param breakpoint: Year of the hinge. Defaults to 1980.
    :type breakpoint: custom_types.Integer

    :ivar observations: Copy of the input table with two added columns:
        ``species_id`` (1-based integer identifier, ordered by sorted species
        label) and ``year_offset`` (hinge-transformed year)
    :ivar breakpoint: Year of the hinge

    :raises DataFormatError: If columns are missing, values are missing or
        non-finite, or the table is empty

    Example:
        >>> data = PhenologyData.from_arrays(
        ...     species=["oak", "oak", "ash"], year=[1975, 1990, 2000], doy=[120, 115, 130]
        ... )
        >>> data.n_species
        2
    """

    def __init__(
        self,
        observations: pd.DataFrame,
        breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
    ):
        # Check the columns
        if missing := [col for col in REQUIRED_COLUMNS if col not in observations]:
            raise DataFormatError(f"Missing required columns: {', '.join(missing)}")

        # There must be data
        if len(observations) == 0:
            raise DataFormatError("At least one observation is required.")

        # No missing values are allowed in the required columns
        if observations[list(REQUIRED_COLUMNS)].isna().any().any():
            raise DataFormatError(
                "Observations contain missing values in required columns."
            )

        # Years and days of year must be finite numbers
        for col in ("year", "doy"):
            if not pd.api.types.is_numeric_dtype(observations[col]):
                raise DataFormatError(f"Column '{col}' must be numeric.")
            if not np.all(np.isfinite(observations[col].to_numpy(dtype=float))):
                raise DataFormatError(f"Column '{col}' contains non-finite values.")

        # Build the processed table
        self.breakpoint = int(breakpoint)
        self.observations = observations.reset_index(drop=True).copy()
        species = pd.Categorical(self.observations["species"])
        self.observations["species_id"] = species.codes.astype(np.int64) + 1
        self.observations["year_offset"] = hinge_years(
            self.observations["year"].to_numpy(), self.breakpoint
        )
        self._species_labels = tuple(species.categories.tolist())

    @classmethod
    def from_arrays(
        cls,
        species: Union[Sequence, npt.NDArray],
        year: Union[Sequence, npt.NDArray],
        doy: Union[Sequence, npt.NDArray],
        breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
    ) -> "PhenologyData":
        """Build a dataset from parallel arrays of species, years, and days of year.

        :raises DataFormatError: If the arrays have different lengths
        """
        if not len(species) == len(year) == len(doy):
            raise DataFormatError(
                "`species`, `year`, and `doy` must all have the same length."
            )
        return cls(
            pd.DataFrame(
                {
                    "species": np.asarray(species),
                    "year": np.asarray(year),
                    "doy": np.asarray(doy, dtype=float),
                }
            ),
            breakpoint=breakpoint,
        )

    def to_stan_data(self, priors: Optional["Priors"] = None) -> "custom_types.StanData":
        """Assemble the data dictionary for the hinge Stan program.

        :param priors: Prior hyperparameters to pass as data. Defaults to None,
            in which case the default priors are used.
        :type priors: Optional[Priors]

        :returns: Dictionary with the number of observations (``N``), number of
            species (``n_species``), 1-based species index per observation
            (``species``), hinge-transformed years (``year``), observed days of
            year (``y``), and all prior hyperparameters
        :rtype: custom_types.StanData
        """
        priors = priors_module.Priors() if priors is None else priors
        stan_data = {
            "N": self.n_obs,
            "n_species": self.n_species,
            "species": self.observations["species_id"].to_numpy(dtype=np.int64),
            "year": self.observations["year_offset"].to_numpy(dtype=float),
            "y": self.observations["doy"].to_numpy(dtype=float),
        }
        stan_data.update(priors.to_dict())
        return stan_data

    def summary(self) -> pd.DataFrame:
        """Summarize the observations by species.

        :returns: Table indexed by species label with the number of
            observations, the first and last observed years, and the mean and
            standard deviation of the observed day of year
        :rtype: pd.DataFrame
        """
        return self.observations.groupby("species").agg(
            n_obs=("doy", "size"),
            first_year=("year", "min"),
            last_year=("year", "max"),
            mean_doy=("doy", "mean"),
            sd_doy=("doy", "std"),
        )

    @property
    def n_obs(self) -> int:
        """Number of observations."""
        return len(self.observations)

    @property
    def n_species(self) -> int:
        """Number of distinct species."""
        return len(self._species_labels)

    @property
    def species_labels(self) -> tuple:
        """Species labels ordered by species id (the label of id ``i`` is at ``i - 1``)."""
        return self._species_labels

    def __len__(self) -> int:
        return self.n_obs

    def __repr__(self) -> str:
        return (
            f"PhenologyData(n_obs={self.n_obs}, n_species={self.n_species}, "
            f"breakpoint={self.breakpoint})"
        )


def load_observations(
    path: Union[str, os.PathLike],
    species_col: str = "species",
    year_col: str = "year",
    doy_col: str = "doy",
    breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
    **read_csv_kwargs,
) -> PhenologyData:
    """Load real phenological observations from a delimited text file.

    Rows with a missing species, year, or day of year are dropped with a warning.

    :param path: Path to the file
    :type path: Union[str, os.PathLike]
    :param species_col: Name of the column identifying species. Defaults to "species".
    :type species_col: str
    :param year_col: Name of the column holding calendar years. Defaults to "year".
    :type year_col: str
    :param doy_col: Name of the column holding the day of year of the event.
        Defaults to "doy".
    :type doy_col: str
    :param breakpoint: Year of the hinge. Defaults to 1980.
    :type breakpoint: custom_types.Integer
    :param read_csv_kwargs: Additional keyword arguments passed to `pd.read_csv`.

    :returns: Validated observations
    :rtype: PhenologyData

    :raises FileNotFoundError: If the file does not exist
    :raises DataFormatError: If a named column is absent or no complete rows remain
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Observation file does not exist: {path}")

    # Load and check the columns
    raw = pd.read_csv(path, **read_csv_kwargs)
    colmap = {species_col: "species", year_col: "year", doy_col: "doy"}
    if missing := [col for col in colmap if col not in raw.columns]:
        raise DataFormatError(
            f"Columns not found in {path}: {', '.join(missing)}. Available columns "
            f"are: {', '.join(map(str, raw.columns))}."
        )
    observations = raw[list(colmap)].rename(columns=colmap)

    # Drop incomplete rows
    incomplete = observations.isna().any(axis=1)
    if n_incomplete := int(incomplete.sum()):
        warnings.warn(
            f"Dropping {n_incomplete} of {len(observations)} rows with missing values."
        )
        observations = observations.loc[~incomplete]

    return PhenologyData(observations, breakpoint=breakpoint)
