# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Core plotting functions for PhenoStan.

This module implements the figures used throughout the workflow: the observed (or
simulated) data, recovery of known parameters, prior predictive curves, posterior
predictive comparisons, and prior sensitivity.

The module leverages HoloViews and hvplot. All functions return HoloViews objects
that can be displayed in a notebook, composed into larger layouts, or embedded in
a Panel report.
"""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING

import holoviews as hv
import hvplot.pandas  # pylint: disable=unused-import
import numpy as np
import pandas as pd
import xarray as xr

from phenostan.defaults import HYPERPARAMETER_NAMES, PLAUSIBLE_DOY_RANGE

if TYPE_CHECKING:
    from phenostan.data import PhenologyData
    from phenostan.model.results.hmc import SampleResults

# Default figure size
WIDTH = 600
HEIGHT = 400


def _interval_scatter(
    df: pd.DataFrame,
    x: str,
    y: str,
    low: str,
    high: str,
    *,
    xlabel: str,
    ylabel: str,
    title: str,
    identity: bool = True,
    width: int = WIDTH,
    height: int = HEIGHT,
) -> hv.Overlay:
    """Scatter plot of point estimates with interval bars and an optional 1:1 line."""
    # Asymmetric error bars are given as distances from the point
    bars = hv.ErrorBars(
        pd.DataFrame(
            {
                x: df[x].to_numpy(),
                y: df[y].to_numpy(),
                "yerrneg": (df[y] - df[low]).to_numpy(),
                "yerrpos": (df[high] - df[y]).to_numpy(),
            }
        ),
        kdims=[x],
        vdims=[y, "yerrneg", "yerrpos"],
    ).opts(color="gray", line_alpha=0.6)
    points = hv.Scatter(df, kdims=[x], vdims=[y]).opts(size=6, color="navy")
    plot = bars * points

    # Add the line of equality
    if identity:
        bounds = np.concatenate([df[x].to_numpy(), df[low].to_numpy(), df[high].to_numpy()])
        lo, hi = float(np.nanmin(bounds)), float(np.nanmax(bounds))
        plot = plot * hv.Curve([(lo, lo), (hi, hi)]).opts(
            color="firebrick", line_dash="dashed"
        )

    return plot.opts(
        hv.opts.Overlay(
            title=title, xlabel=xlabel, ylabel=ylabel, width=width, height=height
        )
    )


def plot_observations(
    data: "PhenologyData", width: int = WIDTH, height: int = HEIGHT
) -> hv.Overlay:
    """Plot day of year against year for every species, marking the breakpoint.

    :param data: Observations to plot
    :type data: PhenologyData
    :param width: Width of the plot. Defaults to 600.
    :type width: int
    :param height: Height of the plot. Defaults to 400.
    :type height: int

    :returns: Overlay of per-species lines and a vertical line at the breakpoint
    :rtype: hv.Overlay
    """
    df = data.observations.assign(species=data.observations["species"].astype(str))
    lines = df.sort_values(["species", "year"]).hvplot.line(
        x="year",
        y="doy",
        by="species",
        legend=False,
        alpha=0.6,
        xlabel="Year",
        ylabel="Day of Year",
    )
    points = df.hvplot.scatter(
        x="year", y="doy", by="species", legend=False, size=8, alpha=0.6
    )
    breakpoint_line = hv.VLine(data.breakpoint).opts(color="black", line_dash="dashed")
    return (lines * points * breakpoint_line).opts(
        title=f"Observations ({data.n_species} species, {data.n_obs} records)",
        width=width,
        height=height,
    )


def plot_species_recovery(
    recovery_table: pd.DataFrame,
    parameter: str = "a",
    width: int = WIDTH,
    height: int = HEIGHT,
) -> hv.Overlay:
    """Plot posterior estimates of a species-level parameter against the truth.

    :param recovery_table: Output of
        :py:func:`~phenostan.model.results.recovery.compare_to_truth`
    :type recovery_table: pd.DataFrame
    :param parameter: Species-level parameter to plot ("a" or "b"). Defaults to "a".
    :type parameter: str

    :returns: Posterior means with HDI bars against true values, with a 1:1 line
    :rtype: hv.Overlay

    :raises ValueError: If the parameter is not in the table
    """
    selected = recovery_table.loc[recovery_table["group"] == parameter]
    if len(selected) == 0:
        raise ValueError(f"No species-level parameter '{parameter}' in the table.")
    return _interval_scatter(
        selected,
        x="truth",
        y="mean",
        low="hdi_low",
        high="hdi_high",
        xlabel=f"True {parameter}",
        ylabel=f"Estimated {parameter}",
        title=f"Recovery of species-level '{parameter}'",
        width=width,
        height=height,
    )


def plot_hyperparameter_recovery(
    results: "SampleResults",
    truth: dict[str, float],
    var_names: Sequence[str] = HYPERPARAMETER_NAMES,
    width: int = 300,
    height: int = 250,
) -> hv.Layout:
    """Plot the posterior density of each hyperparameter with its true value.

    :param results: Results of fitting simulated data
    :type results: SampleResults
    :param truth: True values keyed by hyperparameter name
    :type truth: dict[str, float]
    :param var_names: Hyperparameters to plot. Defaults to all five.
    :type var_names: Sequence[str]

    :returns: One panel per hyperparameter: a kernel density estimate of the
        posterior with a vertical line at the true value
    :rtype: hv.Layout
    """
    panels = []
    for name in var_names:
        draws = pd.DataFrame(
            {name: results.inference_obj.posterior[name].values.ravel()}
        )
        kde = draws.hvplot.kde(y=name, cut=0, color="navy", alpha=0.4)
        panels.append(
            (kde * hv.VLine(truth[name]).opts(color="firebrick", line_width=2)).opts(
                title=name, width=width, height=height, xlabel=name
            )
        )
    return hv.Layout(panels).cols(3)


def plot_prior_predictive(
    prior_draws: xr.Dataset,
    variable: str = "mean_doy",
    n_curves: Optional[int] = 50,
    doy_range: tuple[float, float] = PLAUSIBLE_DOY_RANGE,
    width: int = WIDTH,
    height: int = HEIGHT,
) -> hv.Overlay:
    """Overlay predicted days of year from prior draws.

    :param prior_draws: Output of
        :py:func:`~phenostan.model.priors.draw_prior_predictive`
    :type prior_draws: xr.Dataset
    :param variable: Prediction to plot: "mean_doy" (average species), "mu"
        (every species), or "y" (noisy observations). Defaults to "mean_doy".
    :type variable: str
    :param n_curves: Maximum number of prior draws to plot. Defaults to 50.
        None plots all draws.
    :type n_curves: Optional[int]
    :param doy_range: Plausible range of days of year, shaded. Defaults to (1, 366).
    :type doy_range: tuple[float, float]

    :returns: Overlay of one curve per draw (and species), the shaded plausible
        range, and the breakpoint
    :rtype: hv.Overlay
    """
    if variable not in {"mean_doy", "mu", "y"}:
        raise ValueError(
            f"Unknown variable: {variable}. Options are 'mean_doy', 'mu', and 'y'."
        )

    # Limit the number of draws and convert to a long table with one curve id per
    # combination of draw and species
    selected = prior_draws[variable]
    if n_curves is not None:
        selected = selected.isel(draw=slice(0, n_curves))
    df = selected.to_dataframe(name="doy").reset_index()
    curve_dims = [dim for dim in selected.dims if dim != "year"]
    df["curve"] = df[curve_dims].astype(str).agg("-".join, axis=1)

    # Build the plot
    curves = df.hvplot.line(
        x="year",
        y="doy",
        by="curve",
        legend=False,
        color="steelblue",
        alpha=0.3,
        xlabel="Year",
        ylabel="Day of Year",
    )
    plausible = hv.HSpan(*doy_range).opts(color="green", alpha=0.1)
    breakpoint_line = hv.VLine(prior_draws.attrs.get("breakpoint", 0)).opts(
        color="black", line_dash="dashed"
    )
    return (plausible * curves * breakpoint_line).opts(
        title=f"Prior predictive: {variable}", width=width, height=height
    )


def plot_posterior_predictive(
    posterior_predictive_table: pd.DataFrame,
    width: int = WIDTH,
    height: int = HEIGHT,
) -> hv.Overlay:
    """Plot posterior predictive means and intervals against observed values.

    :param posterior_predictive_table: Output of
        :py:meth:`SampleResults.posterior_predictive_table()
        <phenostan.model.results.hmc.SampleResults.posterior_predictive_table>`
    :type posterior_predictive_table: pd.DataFrame

    :returns: Predicted means with HDI bars against observations, with a 1:1 line
    :rtype: hv.Overlay
    """
    coverage = posterior_predictive_table["covered"].mean()
    return _interval_scatter(
        posterior_predictive_table,
        x="observed",
        y="predicted_mean",
        low="hdi_low",
        high="hdi_high",
        xlabel="Observed Day of Year",
        ylabel="Predicted Day of Year",
        title=f"Posterior predictive check ({coverage:.0%} of observations covered)",
        width=width,
        height=height,
    )


def plot_sensitivity(
    sensitivity_table: pd.DataFrame, width: int = 300, height: int = 250
) -> hv.Layout:
    """Plot posterior intervals of each hyperparameter across prior scales.

    :param sensitivity_table: Output of
        :py:func:`~phenostan.sensitivity.run_prior_sensitivity`
    :type sensitivity_table: pd.DataFrame

    :returns: One panel per hyperparameter with posterior means and HDI bars
        against the prior scale factor
    :rtype: hv.Layout
    """
    panels = []
    for parameter, group in sensitivity_table.groupby("parameter", sort=False):
        panels.append(
            _interval_scatter(
                group.sort_values("scale"),
                x="scale",
                y="mean",
                low="hdi_low",
                high="hdi_high",
                xlabel="Prior Scale Factor",
                ylabel=parameter,
                title=parameter,
                identity=False,
                width=width,
                height=height,
            )
        )
    return hv.Layout(panels).cols(3)
