# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Interactive prior predictive check for the hinge model.

The :py:class:`PriorPredictiveCheck` dashboard exposes one slider per prior
hyperparameter. Moving the sliders and pressing "Update Priors" draws new
hypothetical data from the priors, redraws the predicted days of year, and
reports how much of the prior predictive mass falls outside the plausible range
of days of year. This makes it quick to find priors that are weakly informative
without implying impossible phenology.
"""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING, Union

import holoviews as hv
import numpy as np
import numpy.typing as npt
import panel as pn
import panel.widgets as pnw
import xarray as xr

from param.parameterized import Event

from phenostan.defaults import (
    DEFAULT_BREAKPOINT,
    DEFAULT_N_PRIOR_DRAWS,
    DEFAULT_N_SPECIES,
    PLAUSIBLE_DOY_RANGE,
)
from phenostan.model.priors import (
    Priors,
    draw_prior_predictive,
    implausible_fraction,
)
from phenostan.plotting.plotting import plot_prior_predictive

if TYPE_CHECKING:
    from phenostan import custom_types

# Slider start, end, and step for each prior hyperparameter
_SLIDER_RANGES = {
    "prior_mu_a_mean": (1.0, 366.0, 1.0),
    "prior_mu_a_sd": (1.0, 100.0, 1.0),
    "prior_sigma_a_sd": (1.0, 100.0, 1.0),
    "prior_mu_b_mean": (-5.0, 5.0, 0.1),
    "prior_mu_b_sd": (0.1, 10.0, 0.1),
    "prior_sigma_b_sd": (0.1, 10.0, 0.1),
    "prior_sigma_y_sd": (1.0, 50.0, 1.0),
}

# Labels for the viewed predictions
_VARIABLE_LABELS = {
    "Average Species": "mean_doy",
    "Each Species": "mu",
    "Observations": "y",
}


class PriorPredictiveCheck:
    """Interactive dashboard for prior predictive checks of the hinge model.

    :param priors: Starting priors. Defaults to None (default priors).
    :type priors: Optional[Priors]
    :param years: Calendar years at which to predict. Defaults to None, meaning
        the default year range.
    :type years: Optional[Union[npt.NDArray, Sequence]]
    :param n_species: Number of species per prior draw. Defaults to 30.
    :type n_species: custom_types.Integer
    :param breakpoint: Year of the hinge. Defaults to 1980.
    :type breakpoint: custom_types.Integer

    :ivar float_sliders: Dictionary of prior hyperparameter sliders
    :ivar variable_dropdown: Widget for selecting which prediction to view
    :ivar draw_seed_entry: Widget for setting the random seed
    :ivar draw_entry: Widget for setting the number of prior draws
    :ivar curve_entry: Widget for setting the number of plotted draws
    :ivar update_priors_button: Button to update priors and redraw data
    :ivar update_plot_button: Button to update the plot without redrawing data
    :ivar fig: Pane holding the current plot
    :ivar plausibility: Pane reporting the fraction of implausible predictions

    Example:
        >>> check = PriorPredictiveCheck(Priors(prior_mu_b_sd=0.5))
        >>> check.display()
    """

    def __init__(
        self,
        priors: Optional[Priors] = None,
        years: Optional[Union[npt.NDArray, Sequence]] = None,
        n_species: "custom_types.Integer" = DEFAULT_N_SPECIES,
        breakpoint: "custom_types.Integer" = DEFAULT_BREAKPOINT,
    ):
        # Record fixed settings
        self.years = years
        self.n_species = n_species
        self.breakpoint = breakpoint

        # Initialize widgets
        priors = Priors() if priors is None else priors
        self.float_sliders = self._init_float_sliders(priors)
        self.variable_dropdown = pnw.Select(
            name="Viewed Prediction",
            options=list(_VARIABLE_LABELS),
            value="Average Species",
        )
        self.draw_seed_entry = pnw.IntInput(name="Seed", value=1025)
        self.draw_entry = pnw.IntInput(
            name="Number of Prior Draws", value=DEFAULT_N_PRIOR_DRAWS, start=1
        )
        self.curve_entry = pnw.IntInput(name="Number of Plotted Draws", value=50, start=1)
        self.update_priors_button = pnw.Button(
            name="Update Priors", button_type="primary"
        )
        self.update_plot_button = pnw.Button(name="Update Plot", button_type="primary")

        # Display components
        self.fig = pn.pane.HoloViews(
            hv.Curve([]),
            name="Plot",
            align="center",
            sizing_mode="stretch_both",
        )
        self.plausibility = pn.pane.Markdown("")

        # The update priors button redraws data and updates the plot. The update
        # plot button only changes what is shown.
        self.update_priors_button.on_click(self._full_pipeline)
        self.update_plot_button.on_click(self._update_plot)

        # Draw initial data and build the first plot
        self._xarray_data: xr.Dataset = xr.Dataset()
        self._full_pipeline()

    @staticmethod
    def _init_float_sliders(priors: Priors) -> dict[str, pnw.EditableFloatSlider]:
        """Build one slider per prior hyperparameter, starting at its current value."""
        sliders = {}
        for name, value in priors.items():
            start, end, step = _SLIDER_RANGES[name]
            sliders[name] = pnw.EditableFloatSlider(
                name=name,
                value=value,
                start=min(start, value),
                end=max(end, value),
                step=step,
            )
        return sliders

    @property
    def priors(self) -> Priors:
        """Priors defined by the current slider values."""
        return Priors(**{name: s.value for name, s in self.float_sliders.items()})

    @property
    def prior_draws(self) -> xr.Dataset:
        """The most recent draws from the priors."""
        return self._xarray_data

    def _draw_data(self) -> None:
        """Draw new data from the priors defined by the sliders."""
        self._xarray_data = draw_prior_predictive(
            priors=self.priors,
            years=self.years,
            n_draws=self.draw_entry.value,
            n_species=self.n_species,
            breakpoint=self.breakpoint,
            seed=self.draw_seed_entry.value,
        )

    def _update_plot(  # pylint: disable=unused-argument
        self, event: Optional[Event] = None
    ) -> None:
        """Update the plot and plausibility report without redrawing data.

        :param event: Panel event object (unused, for callback compatibility).
            Defaults to None.
        :type event: Optional[Event]
        """
        self.update_plot_button.loading = True

        variable = _VARIABLE_LABELS[self.variable_dropdown.value]
        self.fig.object = plot_prior_predictive(
            self._xarray_data, variable=variable, n_curves=self.curve_entry.value
        )
        fraction = implausible_fraction(self._xarray_data, variable=variable)
        self.plausibility.object = (
            f"**{fraction:.1%}** of predictions fall outside days "
            f"{PLAUSIBLE_DOY_RANGE[0]:g} to {PLAUSIBLE_DOY_RANGE[1]:g}."
        )

        self.update_plot_button.loading = False

    def _full_pipeline(  # pylint: disable=unused-argument
        self, event: Optional[Event] = None
    ) -> None:
        """Draw new data from the current priors and refresh the plot.

        :param event: Panel event object (unused, for callback compatibility).
            Defaults to None.
        :type event: Optional[Event]
        """
        # Buttons to loading mode
        self.update_priors_button.loading = True
        self.update_plot_button.loading = True

        self._draw_data()
        self._update_plot()

        # Buttons to not be loading
        self.update_priors_button.loading = False
        self.update_plot_button.loading = False

    def display(self) -> pn.Row:
        """Assemble the dashboard.

        :returns: Panel layout with the prior sliders and viewing options on the
            left and the plot on the right
        :rtype: pn.Row

        Example:
            >>> check = PriorPredictiveCheck()
            >>> check.display().servable()  # For web deployment
        """
        return pn.Row(
            pn.WidgetBox(
                pn.WidgetBox(
                    "# Priors",
                    *self.float_sliders.values(),
                    self.draw_seed_entry,
                    self.draw_entry,
                    self.update_priors_button,
                ),
                pn.WidgetBox(
                    "# Viewing Options",
                    self.variable_dropdown,
                    self.curve_entry,
                    self.update_plot_button,
                ),
            ),
            pn.Column(self.fig, self.plausibility),
        )
