# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Model results analysis for PhenoStan.

This submodule provides tools for analyzing results from fits of the hinge
model:

   1. :py:class:`phenostan.model.results.hmc.SampleResults`, which holds results
      from calls to
      :py:meth:`HingeStanModel.sample() <phenostan.model.stan.stan_model.HingeStanModel.sample>`
      and provides summaries, diagnostics, and posterior predictive comparisons.
   2. :py:mod:`phenostan.model.results.recovery`, which compares posterior
      summaries to the parameters used to simulate data.

The ``inference_obj`` attribute of the results class is an ArviZ InferenceData
object, allowing for further analysis using ArviZ's diagnostics and plotting
functions.

    >>> results = model.sample(data=dataset.data)
    >>> sample_failures, var_failures = results.diagnose()
    >>> results.summary_table("mu_")
    >>> recovery.compare_to_truth(results, dataset)
"""

from phenostan.model.results import recovery
from phenostan.model.results.hmc import SampleResults
