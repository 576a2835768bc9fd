# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Parameter recovery checks for fits to simulated data.

When the hinge model is fit to data simulated from known parameters, the
posterior should concentrate near those parameters. The functions in this module
line up posterior summaries against the true values and report how often the
truth falls within the highest density interval (HDI).
"""

from __future__ import annotations

import re

from typing import Optional, TYPE_CHECKING, Union

import pandas as pd

from phenostan.defaults import DEFAULT_HDI_PROB

if TYPE_CHECKING:
    from phenostan import custom_types
    from phenostan.model.results.hmc import SampleResults
    from phenostan.simulation import SimulatedDataset

# Separates a parameter name from its index
_INDEX_EXTRACTOR = re.compile(r"^([A-Za-z0-9_]+)(?:\[(.*)\])?$")


def _parameter_group(label: str) -> str:
    """Get the group of a summary row: 'hyperparameter' or the parameter name."""
    match = _INDEX_EXTRACTOR.match(label)
    if match is None or match.group(2) is None:
        return "hyperparameter"
    return match.group(1)


def compare_to_truth(
    results: "SampleResults",
    truth: Union["SimulatedDataset", dict[str, float]],
    hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB,
) -> pd.DataFrame:
    """Line up posterior summaries with the values used to simulate the data.

    :param results: Results of fitting the model to simulated data
    :type results: SampleResults
    :param truth: Either the simulated dataset or a dictionary mapping summary
        labels (e.g., ``mu_a``, ``a[3]``) to true values
    :type truth: Union[SimulatedDataset, dict[str, float]]
    :param hdi_prob: Probability for highest density interval. Defaults to 0.94.
    :type hdi_prob: custom_types.Float

    :returns: Table indexed by parameter label with columns ``group``
        ("hyperparameter", "a", or "b"), ``truth``, ``mean``, ``sd``,
        ``hdi_low``, ``hdi_high``, ``error`` (mean minus truth), and ``covered``
        (whether the truth lies within the HDI)
    :rtype: pd.DataFrame

    :raises ValueError: If a true value has no matching posterior summary
    """
    truth = truth if isinstance(truth, dict) else truth.true_values()

    # Get the summary statistics. The first four columns are the mean, standard
    # deviation, and lower and upper HDI bounds.
    stats = results.summary_table(kind="stats", hdi_prob=hdi_prob)
    if missing := [label for label in truth if label not in stats.index]:
        raise ValueError(
            f"No posterior summary for: {', '.join(missing[:10])}"
            + ("..." if len(missing) > 10 else "")
        )
    stats = stats.loc[list(truth)].iloc[:, :4]
    stats.columns = ["mean", "sd", "hdi_low", "hdi_high"]

    # Build the table
    table = pd.DataFrame(
        {
            "group": [_parameter_group(label) for label in truth],
            "truth": list(truth.values()),
        },
        index=pd.Index(list(truth), name="parameter"),
    ).join(stats)
    table["error"] = table["mean"] - table["truth"]
    table["covered"] = (table["truth"] >= table["hdi_low"]) & (
        table["truth"] <= table["hdi_high"]
    )
    return table


def coverage(
    recovery_table: pd.DataFrame, by: Optional[str] = "group"
) -> pd.DataFrame:
    """Summarize how often true values fall within their HDIs.

    :param recovery_table: Output of :py:func:`compare_to_truth`
    :type recovery_table: pd.DataFrame
    :param by: Column to group by. Defaults to "group". If None, one row
        summarizes all parameters.
    :type by: Optional[str]

    :returns: Table with columns ``n_parameters``, ``n_covered``, ``coverage``,
        and ``rmse`` (root mean squared error of the posterior means)
    :rtype: pd.DataFrame
    """
    grouped = recovery_table.assign(
        all="all", squared_error=recovery_table["error"] ** 2
    ).groupby(by or "all", sort=False)
    summary = grouped.agg(
        n_parameters=("covered", "size"),
        n_covered=("covered", "sum"),
        mse=("squared_error", "mean"),
    )
    summary["coverage"] = summary["n_covered"] / summary["n_parameters"]
    summary["rmse"] = summary.pop("mse") ** 0.5
    return summary
