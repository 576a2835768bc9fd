# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
PhenoStan: A Bayesian workflow for phenological trends with Stan.

PhenoStan walks through a four-step Bayesian workflow on a phenology example,
where the timing of a seasonal event (day of year) is regressed on year for many
species with a structural break ("hinge") at a fixed breakpoint year:

    1. Conceive the model (a Stan program bundled with the package)
    2. Simulate data from known parameters and check that they are recovered
    3. Check that the priors imply scientifically plausible outcomes
    4. Fit real observations and assess the sensitivity of the results to the
       choice of priors

Sampling is delegated to Stan through CmdStanPy. PhenoStan provides the data
generation, data assembly, summary extraction, diagnostics, plotting, and
reporting that surround it.

Global Variables:
    RNG: Global random number generator for reproducible computations
    __version__: Package version string

Example:
    >>> import phenostan as pst
    >>> pst.manual_seed(42)
    >>> dataset = pst.simulation.simulate_observations()
    >>> model = pst.HingeStanModel()
    >>> res = model.sample(data=dataset.data)
"""

from typing import Optional, TYPE_CHECKING

from typeguard import install_import_hook

import numpy as np

# Define the version
__version__ = "0.1.0"

# Set up type checking
install_import_hook("phenostan")

# Define the global random number generator
RNG: np.random.Generator
"""Global random number generator for PhenoStan.

Used for simulating data, drawing from priors, and seeding the Stan sampler
whenever an explicit seed is not given. It can be seeded using the manual_seed()
function to ensure consistent results across runs.

:type: np.random.Generator
"""

if TYPE_CHECKING:
    from phenostan import custom_types


def manual_seed(seed: Optional["custom_types.Integer"] = None):
    """Set the seed for the global random number generator.

    :param seed: Seed value for random number generation. If None, uses
                system entropy to generate a random seed.
    :type seed: Union[custom_types.Integer, None]

    Example:
        >>> import phenostan as pst
        >>> pst.manual_seed(42)
        >>> random_data = pst.RNG.normal(0, 1, size=100)

    Note:
        This function modifies global state and should typically be called
        once at the beginning of a script or analysis for reproducibility.
    """
    global RNG  # pylint: disable=global-statement
    RNG = np.random.default_rng(seed)


manual_seed()  # Set the seed for the global random number generator

# Import objects that should be easily accessible from the package level
# pylint: disable=wrong-import-position
from phenostan import utils

from phenostan.data import PhenologyData, load_observations
from phenostan.model.priors import Priors
from phenostan.model.stan.stan_model import HingeStanModel

simulation = utils.lazy_import("phenostan.simulation")
results = utils.lazy_import("phenostan.model.results")
plotting = utils.lazy_import("phenostan.plotting")
