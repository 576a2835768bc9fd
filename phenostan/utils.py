# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Utility functions for the PhenoStan package.

Holds the helpers shared across PhenoStan: deferred imports that break import
cycles, seed handling tied to the global random number generator, and anchor
names for report sections. These are internal and rarely needed directly.
"""

from __future__ import annotations

import importlib.util
import re
import sys

from typing import Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from phenostan import custom_types


def lazy_import(name: str):
    """Import a module only when it is first needed.

    :param name: The fully qualified module name to import
    :type name: str

    :returns: The imported module
    :rtype: module

    :raises ImportError: If the specified module cannot be found

    Modules already in ``sys.modules`` are returned as they are.
    """
    if name in sys.modules:
        return sys.modules[name]

    # Deferred loading as in https://docs.python.org/3/library/importlib.html#implementing-lazy-imports
    spec = importlib.util.find_spec(name)
    if spec is None:
        raise ImportError(f"Module '{name}' not found.")

    spec.loader = importlib.util.LazyLoader(spec.loader)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


def get_rng(seed: Optional[custom_types.Integer] = None) -> np.random.Generator:
    """Get the random number generator to use for a draw.

    :param seed: Seed for a fresh generator. If None, the global generator
        (``phenostan.RNG``) is returned so that draws follow the global seed.
    :type seed: Optional[custom_types.Integer]

    :returns: Random number generator
    :rtype: np.random.Generator
    """
    # pylint: disable=import-outside-toplevel
    import phenostan

    if seed is None:
        return phenostan.RNG
    return np.random.default_rng(seed)


def get_seed(seed: Optional[custom_types.Integer] = None) -> int:
    """Resolve a seed for an external library.

    :param seed: Seed to use. If None, one is drawn from the global generator.
    :type seed: Optional[custom_types.Integer]

    :returns: Seed as a Python integer
    :rtype: int
    """
    # pylint: disable=import-outside-toplevel
    import phenostan

    if seed is None:
        return int(phenostan.RNG.integers(0, 2**32 - 1))
    return int(seed)


def slugify(title: str) -> str:
    """Convert a section title into an HTML anchor.

    :param title: Title to convert
    :type title: str

    :returns: Lowercase anchor containing only letters, digits, and hyphens
    :rtype: str

    Example:
        >>> slugify("Step 2: Parameter Recovery")
        'step-2-parameter-recovery'
    """
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
