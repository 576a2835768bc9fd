# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Model definition, fitting, and results for PhenoStan.

The hinge model is a hierarchical regression of the day of year of a
phenological event on year, with one intercept and one slope per species. Before
the breakpoint year the expected day of year is flat; after it, it changes
linearly. Species intercepts and slopes are drawn from normal distributions whose
means and standard deviations are themselves estimated.

This subpackage is organized as follows:

    - :py:mod:`phenostan.model.stan`: The Stan program describing the model and
      :py:class:`~phenostan.model.stan.stan_model.HingeStanModel`, which compiles
      it and samples from the posterior.
    - :py:mod:`phenostan.model.priors`: The priors of the model and prior
      predictive simulation.
    - :py:mod:`phenostan.model.results`: Posterior summaries, diagnostics, and
      parameter recovery checks.

A typical workflow looks like this:

    1. **Prior Predictive Checks**: Use
       :py:func:`~phenostan.model.priors.draw_prior_predictive` to evaluate
       whether the priors imply plausible days of year.
    2. **Compilation**: Instantiate
       :py:class:`~phenostan.model.stan.stan_model.HingeStanModel`.
    3. **Sampling**: Fit observations with Hamiltonian Monte Carlo via Stan.
    4. **Analysis**: Process results using built-in diagnostic tools.

Example:
    >>> import phenostan as pst
    >>> model = pst.HingeStanModel()
    >>> res = model.sample(data=observations, chains=4)
    >>> res.diagnose()
"""
