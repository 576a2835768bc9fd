# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Prior sensitivity analysis for the hinge model.

The hyperparameter posteriors are compared across refits in which every prior
scale is multiplied by a factor. Posteriors that barely move are dominated by the
data; posteriors that track the prior scale are sensitive to the choice of prior
and should be interpreted with care. Because the prior hyperparameters are passed
to Stan as data, all refits reuse a single compiled model.
"""

from __future__ import annotations

from typing import Optional, Sequence, TYPE_CHECKING

import pandas as pd

from tqdm import tqdm

from phenostan.defaults import DEFAULT_HDI_PROB, DEFAULT_SENSITIVITY_SCALES
from phenostan.model.priors import Priors

if TYPE_CHECKING:
    from phenostan import custom_types
    from phenostan.data import PhenologyData
    from phenostan.model.stan.stan_model import HingeStanModel


def run_prior_sensitivity(
    model: "HingeStanModel",
    data: "PhenologyData",
    priors: Optional[Priors] = None,
    scales: Sequence[float] = DEFAULT_SENSITIVITY_SCALES,
    hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB,
    **sample_kwargs,
) -> pd.DataFrame:
    """Refit the model with scaled priors and collect hyperparameter summaries.

    :param model: Compiled hinge model
    :type model: HingeStanModel
    :param data: Observations to fit
    :type data: PhenologyData
    :param priors: Baseline priors to scale. Defaults to None (default priors).
    :type priors: Optional[Priors]
    :param scales: Factors applied to every prior scale. Defaults to (0.5, 1, 2).
    :type scales: Sequence[float]
    :param hdi_prob: Probability for highest density interval. Defaults to 0.94.
    :type hdi_prob: custom_types.Float
    :param sample_kwargs: Keyword arguments passed to
        :py:meth:`HingeStanModel.sample() <phenostan.model.stan.stan_model.HingeStanModel.sample>`

    :returns: Tidy table with one row per scale and hyperparameter and columns
        ``scale``, ``parameter``, ``mean``, ``sd``, ``hdi_low``, ``hdi_high``, and
        ``shift`` (change of the posterior mean relative to the baseline fit in
        units of the baseline posterior standard deviation; missing when 1 is
        not among the scales)
    :rtype: pd.DataFrame

    :raises ValueError: If no scales are given
    """
    if len(scales) == 0:
        raise ValueError("At least one scale factor is required.")
    priors = Priors() if priors is None else priors

    # Fit the model for each scale
    tables = []
    for scale in tqdm(scales, desc="Prior sensitivity"):
        res = model.sample(data, priors.scaled(scale), **sample_kwargs)
        table = res.hyperparameter_table(hdi_prob=hdi_prob).iloc[:, :4]
        table.columns = ["mean", "sd", "hdi_low", "hdi_high"]
        tables.append(
            table.rename_axis("parameter").reset_index().assign(scale=float(scale))
        )
    combined = pd.concat(tables, ignore_index=True)[
        ["scale", "parameter", "mean", "sd", "hdi_low", "hdi_high"]
    ]

    # Shift in the posterior mean relative to the baseline
    return add_baseline_shift(combined)


def add_baseline_shift(sensitivity_table: pd.DataFrame) -> pd.DataFrame:
    """Add the shift of each posterior mean relative to the unscaled priors.

    :param sensitivity_table: Table with columns ``scale``, ``parameter``,
        ``mean``, and ``sd``
    :type sensitivity_table: pd.DataFrame

    :returns: Copy of the table with a ``shift`` column
    :rtype: pd.DataFrame
    """
    table = sensitivity_table.copy()
    baseline = table.loc[table["scale"] == 1.0].set_index("parameter")
    if len(baseline) == 0:
        table["shift"] = float("nan")
        return table
    table["shift"] = (
        table["mean"] - table["parameter"].map(baseline["mean"])
    ) / table["parameter"].map(baseline["sd"])
    return table
