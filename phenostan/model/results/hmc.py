# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Hamiltonian Monte Carlo (HMC) sampling results analysis and diagnostics.

This module provides the :py:class:`SampleResults` class, which wraps an ArviZ
``InferenceData`` object built from a CmdStanPy fit of the hinge model. It offers
tools for computing and tabulating posterior summaries, extracting the rows of a
summary whose parameter names match a pattern, running MCMC diagnostics, and
comparing posterior predictions to the observed data.

Diagnostics cover split R-hat, bulk and tail effective sample sizes (ESS), the
energy Bayesian fraction of missing information (E-BFMI) of each chain,
divergent transitions, and saturation of the maximum tree depth.
"""

from __future__ import annotations

import os
import warnings

from typing import Literal, Optional, Sequence, TYPE_CHECKING, Union

import arviz as az
import numpy as np
import pandas as pd
import xarray as xr

from cmdstanpy import CmdStanMCMC

from phenostan.defaults import (
    DEFAULT_EBFMI_THRESH,
    DEFAULT_ESS_THRESH,
    DEFAULT_HDI_PROB,
    DEFAULT_MAX_TREEDEPTH,
    DEFAULT_RHAT_THRESH,
    HYPERPARAMETER_NAMES,
)
from phenostan.exceptions import ConvergenceWarning

if TYPE_CHECKING:
    from phenostan import custom_types
    from phenostan.data import PhenologyData
    from phenostan.model.priors import Priors


class SampleResults:
    """Analysis interface for HMC sampling results of the hinge model.

    Users will not typically instantiate this class directly. Instead, it is
    returned by :py:meth:`HingeStanModel.sample()
    <phenostan.model.stan.stan_model.HingeStanModel.sample>` or loaded with
    :py:meth:`from_disk`.

    :param inference_obj: ArviZ InferenceData object or path to a NetCDF file
        holding one
    :type inference_obj: Union[az.InferenceData, str, os.PathLike]
    :param fit: CmdStanMCMC object the inference object was built from. Defaults
        to None.
    :type fit: Optional[CmdStanMCMC]

    :ivar inference_obj: ArviZ InferenceData object with all results
    :ivar fit: CmdStanMCMC object, if available

    :raises ValueError: If inference_obj is neither a path nor InferenceData
    :raises ValueError: If the posterior group is missing
    """

    def __init__(
        self,
        inference_obj: Union[az.InferenceData, str, os.PathLike],
        fit: Optional[CmdStanMCMC] = None,
    ):
        # If the ArviZ object is a string, we assume it is a path to a netcdf file
        # and load it from there
        if isinstance(inference_obj, (str, os.PathLike)):
            inference_obj = az.from_netcdf(os.fspath(inference_obj), engine="h5netcdf")
        elif not isinstance(inference_obj, az.InferenceData):
            raise ValueError(
                "inference_obj must be either a path or an InferenceData object"
            )

        # The arviz object must have a posterior
        if "posterior" not in inference_obj.groups():
            raise ValueError("ArviZ object is missing the posterior group")

        self.inference_obj = inference_obj
        self.fit = fit

    @classmethod
    def from_fit(
        cls,
        fit: CmdStanMCMC,
        data: "PhenologyData",
        priors: Optional["Priors"] = None,
    ) -> "SampleResults":
        """Build results from a CmdStanPy fit of the hinge model.

        :param fit: Fit returned by CmdStanPy
        :type fit: CmdStanMCMC
        :param data: Observations the model was fit to
        :type data: PhenologyData
        :param priors: Priors used for the fit. Recorded in the attributes of the
            posterior group. Defaults to None.
        :type priors: Optional[Priors]

        :returns: Results with posterior, posterior predictive, observed data,
            and sample statistics groups. Species-level parameters are indexed by
            species label.
        :rtype: SampleResults
        """
        inference_obj = az.from_cmdstanpy(
            posterior=fit,
            posterior_predictive="y_rep",
            observed_data={"y": data.observations["doy"].to_numpy(dtype=float)},
            coords={
                "species": list(data.species_labels),
                "obs": np.arange(data.n_obs),
            },
            dims={
                "a": ["species"],
                "b": ["species"],
                "y_rep": ["obs"],
                "y": ["obs"],
            },
        )

        # Record the sampler settings and priors needed downstream
        inference_obj.sample_stats.attrs["max_depth"] = int(
            fit.metadata.cmdstan_config.get("max_depth", DEFAULT_MAX_TREEDEPTH)
        )
        inference_obj.posterior.attrs["breakpoint"] = data.breakpoint
        if priors is not None:
            inference_obj.posterior.attrs.update(priors.to_dict())

        return cls(inference_obj, fit=fit)

    @classmethod
    def from_disk(cls, path: Union[str, os.PathLike]) -> "SampleResults":
        """Load results previously saved with :py:meth:`save_netcdf`."""
        return cls(path)

    def save_netcdf(self, filename: Union[str, os.PathLike]) -> None:
        """Save the ArviZ InferenceData object to NetCDF format."""
        self.inference_obj.to_netcdf(os.fspath(filename), engine="h5netcdf")

    def _update_group(
        self, attrname: str, new_group: xr.Dataset, force_del: bool = False
    ) -> None:
        """Update or add a group to the ArviZ InferenceData object."""
        # If the group already exists and we are not forcing a delete, we just update
        # the group.
        if hasattr(self.inference_obj, attrname) and not force_del:
            getattr(self.inference_obj, attrname).update(new_group)
            return

        # Otherwise, if we are forcing a delete, we delete the group before adding
        # the new one
        if force_del and hasattr(self.inference_obj, attrname):
            delattr(self.inference_obj, attrname)
        with warnings.catch_warnings():
            warnings.filterwarnings(
                "ignore", category=UserWarning, message=".*is not defined in the"
            )
            self.inference_obj.add_groups({attrname: new_group})

    def calculate_summaries(
        self,
        var_names: list[str] | None = None,
        filter_vars: Literal[None, "like", "regex"] = None,
        kind: Literal["all", "stats", "diagnostics"] = "all",
        round_to: Union["custom_types.Integer", str] = "none",
        hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB,
        diagnostic_varnames: Sequence[str] = (
            "mcse_mean",
            "mcse_sd",
            "ess_bulk",
            "ess_tail",
            "r_hat",
        ),
    ) -> xr.Dataset:
        """Compute summary statistics and diagnostics of the posterior.

        Arguments are passed to `az.summary`. Results are also written to the
        InferenceData object so that they are saved with it.

        :returns: Dataset with a ``metric`` dimension holding all computed metrics
        :rtype: xr.Dataset

        :raises ValueError: If diagnostics are requested for a single chain

        Summary statistics go to the `variable_summary_stats` group and
        diagnostics to the `variable_diagnostic_stats` group.
        """
        # Diagnostics compare chains
        if kind != "stats" and self.n_chains <= 1:
            raise ValueError(
                "At least two chains are needed to calculate diagnostics."
            )

        summaries = az.summary(
            data=self.inference_obj,
            var_names=var_names,
            filter_vars=filter_vars,
            fmt="xarray",
            kind=kind,
            round_to=round_to,
            hdi_prob=hdi_prob,
        )

        # Split the metrics into diagnostics and statistics
        metrics = summaries.metric.values.tolist()
        diagnostic_metrics = [m for m in metrics if m in diagnostic_varnames]
        stat_metrics = [m for m in metrics if m not in diagnostic_varnames]

        # Update the groups
        if kind in {"all", "diagnostics"}:
            self._update_group(
                "variable_diagnostic_stats", summaries.sel(metric=diagnostic_metrics)
            )
        if kind in {"all", "stats"}:
            self._update_group(
                "variable_summary_stats", summaries.sel(metric=stat_metrics)
            )
        return summaries

    def calculate_diagnostics(self) -> xr.Dataset:
        """Compute MCMC diagnostics, storing them in the InferenceData object."""
        return self.calculate_summaries(kind="diagnostics")

    def summary_table(
        self,
        pattern: Optional[str] = None,
        regex: bool = True,
        kind: Literal["all", "stats", "diagnostics"] = "all",
        hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB,
        round_to: Union["custom_types.Integer", str] = "none",
    ) -> pd.DataFrame:
        """Tabulate posterior summaries, optionally keeping only matching parameters.

        Rows are labeled by parameter name, with species-level parameters labeled
        by species (e.g., ``a[3]``).

        :param pattern: Pattern that the row label must contain to be kept.
            Defaults to None (keep all rows).
        :type pattern: Optional[str]
        :param regex: Whether ``pattern`` is a regular expression (True) or a
            literal substring (False). Defaults to True.
        :type regex: bool
        :param kind: Which metrics to compute. Defaults to "all".
        :type kind: Literal["all", "stats", "diagnostics"]
        :param hdi_prob: Probability for highest density interval. Defaults to 0.94.
        :type hdi_prob: custom_types.Float
        :param round_to: Decimal places for rounding. Defaults to "none" (no rounding).
        :type round_to: Union[custom_types.Integer, str]

        :returns: Summary table with one row per matching parameter
        :rtype: pd.DataFrame

        Example:
            >>> # Hyperparameters governing species intercepts
            >>> res.summary_table("_a$")
            >>> # All species slopes
            >>> res.summary_table("b[", regex=False)
        """
        table = az.summary(
            self.inference_obj, kind=kind, hdi_prob=hdi_prob, round_to=round_to
        )
        if pattern is None:
            return table
        return table.loc[table.index.str.contains(pattern, regex=regex)]

    def hyperparameter_table(
        self, hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB
    ) -> pd.DataFrame:
        """Tabulate posterior summaries of the hyperparameters only."""
        return self.summary_table(
            pattern=f"^(?:{'|'.join(HYPERPARAMETER_NAMES)})$", hdi_prob=hdi_prob
        ).reindex(list(HYPERPARAMETER_NAMES))

    def evaluate_sample_stats(
        self,
        max_tree_depth: "custom_types.Integer | None" = None,
        ebfmi_thresh: "custom_types.Float" = DEFAULT_EBFMI_THRESH,
    ) -> xr.Dataset:
        """Evaluate sample-level diagnostic statistics.

        Failure Conditions:
        - **Tree Depth**: Sample reached maximum tree depth (saturation)
        - **E-BFMI**: Energy-based fraction of missing information of a chain
          below threshold
        - **Divergence**: Sample diverged during Hamiltonian dynamics

        True values indicate failures. Results are stored in the
        'sample_diagnostic_tests' group of the InferenceData object.

        :returns: Dataset with boolean arrays indicating test failures
        :rtype: xr.Dataset
        """
        sample_stats = self.inference_obj.sample_stats

        # If not provided, extract the maximum tree depth from the attributes
        if max_tree_depth is None:
            max_tree_depth = sample_stats.attrs.get("max_depth", DEFAULT_MAX_TREEDEPTH)

        sample_tests = xr.Dataset(
            {
                "low_ebfmi": xr.DataArray(
                    az.bfmi(self.inference_obj) < ebfmi_thresh,
                    dims="chain",
                    coords={"chain": sample_stats.chain},
                ),
                "max_tree_depth_reached": sample_stats.tree_depth >= max_tree_depth,
                "diverged": sample_stats.diverging.astype(bool),
            }
        )
        self._update_group("sample_diagnostic_tests", sample_tests, force_del=True)

        return sample_tests

    def evaluate_variable_diagnostic_stats(
        self,
        r_hat_thresh: "custom_types.Float" = DEFAULT_RHAT_THRESH,
        ess_thresh: "custom_types.Float" = DEFAULT_ESS_THRESH,
    ) -> xr.Dataset:
        """Evaluate variable-level diagnostic statistics for convergence assessment.

        Failure Conditions:
        - **R-hat**: Split R-hat statistic >= threshold (poor convergence)
        - **ESS Bulk**: Bulk effective sample size <= threshold per chain
        - **ESS Tail**: Tail effective sample size <= threshold per chain

        :returns: Dataset with boolean arrays indicating variable-level test failures
        :rtype: xr.Dataset

        :raises ValueError: If variable_diagnostic_stats group doesn't exist
        :raises ValueError: If required metrics are missing
        """
        # Diagnostics must have been calculated
        if not hasattr(self.inference_obj, "variable_diagnostic_stats"):
            raise ValueError(
                "No `variable_diagnostic_stats` group. Run `calculate_diagnostics` "
                "before evaluating diagnostics."
            )
        diagnostics = self.inference_obj.variable_diagnostic_stats

        # All metrics should be present
        if missing_metrics := (
            {"r_hat", "ess_bulk", "ess_tail"} - set(diagnostics.metric.values.tolist())
        ):
            raise ValueError(
                f"Diagnostic metrics missing from `variable_diagnostic_stats`: "
                f"{', '.join(sorted(missing_metrics))}."
            )

        # ESS threshold is per chain
        ess_thresh = ess_thresh * self.n_chains

        variable_tests = xr.concat(
            [
                diagnostics.sel(metric="r_hat") >= r_hat_thresh,
                diagnostics.sel(metric="ess_bulk") <= ess_thresh,
                diagnostics.sel(metric="ess_tail") <= ess_thresh,
            ],
            dim="metric",
        )
        self._update_group("variable_diagnostic_tests", variable_tests, force_del=True)

        return variable_tests

    def identify_failed_diagnostics(self, silent: bool = False) -> tuple[
        "custom_types.StrippedTestRes",
        dict[str, "custom_types.StrippedTestRes"],
    ]:
        """Identify and report diagnostic test failures.

        Requires that :py:meth:`evaluate_sample_stats` and
        :py:meth:`evaluate_variable_diagnostic_stats` have been run.

        :param silent: Whether to suppress printed output. Defaults to False.
        :type silent: bool

        :returns: Tuple of (sample_failures, variable_failures). The first maps
            each sample test to the indices of the failing samples; the second maps
            each metric to a dictionary of variable names and the indices of the
            failing elements.
        :rtype: tuple[custom_types.StrippedTestRes, dict[str, custom_types.StrippedTestRes]]
        """

        def process_test_results(
            test_res_dataset: xr.Dataset,
        ) -> "custom_types.ProcessedTestRes":
            """Map each variable to its failed indices and number of tests."""
            return {
                varname: (np.atleast_1d(tests.values).nonzero(), tests.values.size)
                for varname, tests in test_res_dataset.items()
            }

        def strip_totals(
            processed_test_results: "custom_types.ProcessedTestRes",
        ) -> "custom_types.StrippedTestRes":
            """Strip the totals from the test results."""
            return {k: v[0] for k, v in processed_test_results.items()}

        def report_test_summary(
            processed_test_results: "custom_types.ProcessedTestRes",
            type_: str,
            prepend_newline: bool = True,
        ) -> None:
            """Print the number of failures of each test."""
            if prepend_newline:
                print()
            header = f"{type_.capitalize()} diagnostic tests results' summaries:"
            print(header)
            print("-" * len(header))
            for varname, (failed_indices, total_tests) in processed_test_results.items():
                n_failures = len(failed_indices[0])
                print(
                    f"{n_failures} of {total_tests} ({n_failures / total_tests:.2%}) "
                    f"{units_map.get(varname, type_ + 's')} "
                    f"{message_map.get(varname, f'failed for {varname}')}."
                )

        # Wording of the printed report
        message_map = {
            "low_ebfmi": "had a low energy",
            "max_tree_depth_reached": "reached the maximum tree depth",
            "diverged": "diverged",
        }
        units_map = {"low_ebfmi": "chains"}

        # pylint: disable=no-member
        sample_test_failures = process_test_results(
            self.inference_obj.sample_diagnostic_tests
        )
        variable_test_failures = {
            metric.item(): process_test_results(
                self.inference_obj.variable_diagnostic_tests.sel(metric=metric.item())
            )
            for metric in self.inference_obj.variable_diagnostic_tests.metric
        }
        # pylint: enable=no-member

        # Only the failed indices are returned
        res = (
            strip_totals(sample_test_failures),
            {
                metric: strip_totals(failures)
                for metric, failures in variable_test_failures.items()
            },
        )

        if silent:
            return res

        report_test_summary(sample_test_failures, "sample", prepend_newline=False)
        for metric, failures in variable_test_failures.items():
            report_test_summary(failures, metric)

        return res

    def diagnose(
        self,
        max_tree_depth: "custom_types.Integer | None" = None,
        ebfmi_thresh: "custom_types.Float" = DEFAULT_EBFMI_THRESH,
        r_hat_thresh: "custom_types.Float" = DEFAULT_RHAT_THRESH,
        ess_thresh: "custom_types.Float" = DEFAULT_ESS_THRESH,
        silent: bool = False,
    ) -> tuple[
        "custom_types.StrippedTestRes", dict[str, "custom_types.StrippedTestRes"]
    ]:
        """Run the complete MCMC diagnostic pipeline.

        Runs :py:meth:`calculate_diagnostics`, :py:meth:`evaluate_sample_stats`,
        :py:meth:`evaluate_variable_diagnostic_stats`, and
        :py:meth:`identify_failed_diagnostics` in order.

        A :py:class:`~phenostan.exceptions.ConvergenceWarning` is emitted if any
        test fails.

        :returns: Tuple of (sample_failures, variable_failures) as returned by
            identify_failed_diagnostics
        :rtype: tuple[custom_types.StrippedTestRes, dict[str, custom_types.StrippedTestRes]]
        """
        self.calculate_diagnostics()
        self.evaluate_sample_stats(
            max_tree_depth=max_tree_depth, ebfmi_thresh=ebfmi_thresh
        )
        self.evaluate_variable_diagnostic_stats(
            r_hat_thresh=r_hat_thresh, ess_thresh=ess_thresh
        )
        sample_failures, variable_failures = self.identify_failed_diagnostics(
            silent=silent
        )

        # Warn about any failures
        failed_tests = [
            name for name, inds in sample_failures.items() if len(inds[0]) > 0
        ] + [
            metric
            for metric, failures in variable_failures.items()
            if any(len(inds[0]) > 0 for inds in failures.values())
        ]
        if failed_tests:
            warnings.warn(
                f"MCMC diagnostics failed: {', '.join(failed_tests)}. Posterior "
                "summaries may be unreliable.",
                ConvergenceWarning,
            )

        return sample_failures, variable_failures

    def diagnostics_table(self) -> pd.DataFrame:
        """Tabulate the number of failures of each diagnostic test.

        Runs :py:meth:`diagnose` silently if it has not been run yet.

        :returns: Table with columns ``test``, ``n_failed``, and ``n_tests``
        :rtype: pd.DataFrame
        """
        if not hasattr(self.inference_obj, "variable_diagnostic_tests"):
            with warnings.catch_warnings():
                warnings.simplefilter("ignore", ConvergenceWarning)
                self.diagnose(silent=True)

        # pylint: disable=no-member
        rows = [
            {
                "test": name,
                "n_failed": int(tests.values.sum()),
                "n_tests": int(tests.values.size),
            }
            for name, tests in self.inference_obj.sample_diagnostic_tests.items()
        ]
        variable_tests = self.inference_obj.variable_diagnostic_tests
        for metric in variable_tests.metric.values.tolist():
            selected = variable_tests.sel(metric=metric)
            rows.append(
                {
                    "test": metric,
                    "n_failed": int(sum(t.values.sum() for t in selected.values())),
                    "n_tests": int(sum(t.values.size for t in selected.values())),
                }
            )
        # pylint: enable=no-member
        return pd.DataFrame(rows)

    def posterior_predictive_table(
        self, hdi_prob: "custom_types.Float" = DEFAULT_HDI_PROB
    ) -> pd.DataFrame:
        """Compare observed days of year to their posterior predictive distribution.

        :param hdi_prob: Probability for highest density interval. Defaults to 0.94.
        :type hdi_prob: custom_types.Float

        :returns: Table with one row per observation and columns ``observed``,
            ``predicted_mean``, ``hdi_low``, ``hdi_high``, and ``covered``
        :rtype: pd.DataFrame

        :raises ValueError: If there is no posterior predictive or observed data
        """
        if missing := {"posterior_predictive", "observed_data"} - set(
            self.inference_obj.groups()
        ):
            raise ValueError(
                f"ArviZ object is missing the following groups: {', '.join(missing)}"
            )

        # pylint: disable=no-member
        y_rep = self.inference_obj.posterior_predictive["y_rep"]
        observed = self.inference_obj.observed_data["y"].values
        # pylint: enable=no-member
        hdi = az.hdi(
            self.inference_obj,
            group="posterior_predictive",
            var_names=["y_rep"],
            hdi_prob=hdi_prob,
        )["y_rep"].values

        table = pd.DataFrame(
            {
                "observed": observed,
                "predicted_mean": y_rep.mean(dim=("chain", "draw")).values,
                "hdi_low": hdi[:, 0],
                "hdi_high": hdi[:, 1],
            }
        )
        table["covered"] = table["observed"].between(table["hdi_low"], table["hdi_high"])
        return table

    @property
    def n_chains(self) -> int:
        """Number of chains in the posterior."""
        return int(self.inference_obj.posterior.sizes["chain"])

    @property
    def n_draws(self) -> int:
        """Number of draws per chain in the posterior."""
        return int(self.inference_obj.posterior.sizes["draw"])
