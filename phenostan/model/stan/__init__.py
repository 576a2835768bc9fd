# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Stan probabilistic programming language integration for PhenoStan.

This submodule bundles the Stan program describing the hinge model and provides
the interface used to compile it and sample from its posterior with Hamiltonian
Monte Carlo (HMC) through CmdStanPy.

The Stan program is kept in its own file so that it can be read, displayed
verbatim in reports, and used independently of PhenoStan.
"""

import os.path

# We need the path of the directory of the current file. This is used to locate
# the bundled Stan program.
STAN_DIR = os.path.abspath(os.path.dirname(__file__))
"""Absolute path of the directory holding the bundled Stan program."""

HINGE_MODEL_PATH = os.path.join(STAN_DIR, "hinge.stan")
"""Absolute path of the Stan program describing the hinge model."""
