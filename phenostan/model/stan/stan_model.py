# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Compilation of and sampling from the bundled hinge model.

This module provides :py:class:`HingeStanModel`, an extension of CmdStanPy's
``CmdStanModel`` that knows how to assemble the data for the hinge model from
:py:class:`~phenostan.data.PhenologyData` and
:py:class:`~phenostan.model.priors.Priors` objects, seeds the sampler from the
global PhenoStan random number generator, and returns results wrapped in
:py:class:`~phenostan.model.results.hmc.SampleResults`.
"""

from __future__ import annotations

import filecmp
import os.path
import shutil
import weakref

from tempfile import TemporaryDirectory
from typing import Any, Optional, TYPE_CHECKING, Union

import numpy as np

from cmdstanpy import CmdStanModel

from phenostan import utils
from phenostan.defaults import (
    DEFAULT_CHAINS,
    DEFAULT_CPP_OPTIONS,
    DEFAULT_FORCE_COMPILE,
    DEFAULT_ITER_SAMPLING,
    DEFAULT_ITER_WARMUP,
    DEFAULT_MODEL_NAME,
    DEFAULT_PARALLEL_CHAINS,
    DEFAULT_STANC_OPTIONS,
    HYPERPARAMETER_NAMES,
    SPECIES_PARAMETER_NAMES,
)
from phenostan.exceptions import ModelFileError
from phenostan.model.priors import draw_prior_predictive, Priors
from phenostan.model.stan import HINGE_MODEL_PATH

if TYPE_CHECKING:
    from phenostan import custom_types
    from phenostan.data import PhenologyData

results = utils.lazy_import("phenostan.model.results")


def read_model_code(stan_file: Union[str, os.PathLike] = HINGE_MODEL_PATH) -> str:
    """Read a Stan program verbatim.

    :param stan_file: Path to the Stan program. Defaults to the bundled hinge model.
    :type stan_file: Union[str, os.PathLike]

    :returns: Contents of the file
    :rtype: str

    :raises ModelFileError: If the file does not exist
    """
    if not os.path.isfile(stan_file):
        raise ModelFileError(f"Stan model file does not exist: {stan_file}")
    with open(stan_file, "r", encoding="utf-8") as f:
        return f.read()


class HingeStanModel(CmdStanModel):
    """CmdStanModel for the hierarchical hinge model of phenological timing.

    :param stan_file: Stan program to compile. Defaults to the bundled hinge
        model. Alternate programs must accept the same data and define the same
        parameters.
    :type stan_file: Union[str, os.PathLike]
    :param output_dir: Directory for the copied Stan program, the compiled
        executable, and sampler outputs. Defaults to None (temporary directory
        removed when the model is garbage collected).
    :type output_dir: Optional[str]
    :param force_compile: Whether to force recompilation. Defaults to False.
    :type force_compile: bool
    :param stanc_options: Options for Stan compiler. Defaults to None (uses defaults).
    :type stanc_options: Optional[dict[str, Any]]
    :param cpp_options: Options for C++ compilation. Defaults to None (uses defaults).
    :type cpp_options: Optional[dict[str, Any]]
    :param model_name: Name for compiled model. Defaults to 'hinge'.
    :type model_name: str

    :ivar source_path: Path of the Stan program that was compiled
    :ivar output_dir: Directory containing Stan files
    :ivar stan_executable_path: Path to compiled Stan executable

    :raises ModelFileError: If ``stan_file`` does not exist
    :raises FileNotFoundError: If ``output_dir`` is given but does not exist

    The Stan program is copied into the output directory before compilation so
    that the executable is cached alongside it. A cached executable is reused
    as long as the copied program is unchanged.
    """

    def __init__(
        self,
        stan_file: Union[str, os.PathLike] = HINGE_MODEL_PATH,
        output_dir: Optional[str] = None,
        force_compile: bool = DEFAULT_FORCE_COMPILE,
        stanc_options: Optional[dict[str, Any]] = None,
        cpp_options: Optional[dict[str, Any]] = None,
        model_name: str = DEFAULT_MODEL_NAME,
    ):
        # The Stan program must exist
        if not os.path.isfile(stan_file):
            raise ModelFileError(f"Stan model file does not exist: {stan_file}")
        self.source_path = os.path.abspath(stan_file)

        # Set default options
        self._stanc_options = dict(stanc_options or DEFAULT_STANC_OPTIONS)
        cpp_options = cpp_options or DEFAULT_CPP_OPTIONS

        # Set the output directory and get the executable path
        self._set_output_dir(output_dir)
        self.stan_executable_path = os.path.join(self.output_dir, model_name)

        # Copy the Stan program next to the executable. An unchanged copy is left
        # alone so that its timestamp does not trigger recompilation. A changed
        # copy invalidates the cached executable.
        program_changed = self.write_stan_program()

        # Initialize the CmdStanModel
        super().__init__(
            stan_file=self.stan_program_path,
            exe_file=(
                self.stan_executable_path
                if os.path.exists(self.stan_executable_path)
                and not (force_compile or program_changed)
                else None
            ),
            force_compile=force_compile,
            stanc_options=self._stanc_options,
            cpp_options=cpp_options,
        )

    def _set_output_dir(self, output_dir: Optional[str]) -> None:
        """Configure output directory with automatic cleanup for temporary directories.

        :raises FileNotFoundError: If specified directory doesn't exist
        """
        # Make a temporary directory if none is specified. Set up a weak reference
        # to clean up the temporary directory when the model is deleted.
        if output_dir is None:
            tempdir = TemporaryDirectory()
            weakref.finalize(self, tempdir.cleanup)
            output_dir = tempdir.name

        # Make sure the output directory exists
        if not os.path.exists(output_dir):
            raise FileNotFoundError(f"Output directory {output_dir} does not exist.")

        self.output_dir = output_dir

    def write_stan_program(self) -> bool:
        """Copy the source Stan program into the output directory if it changed.

        :returns: Whether the copy was written
        :rtype: bool
        """
        if os.path.exists(self.stan_program_path) and filecmp.cmp(
            self.source_path, self.stan_program_path, shallow=False
        ):
            return False
        shutil.copyfile(self.source_path, self.stan_program_path)
        return True

    def gather_inputs(
        self, data: "PhenologyData", priors: Optional[Priors] = None
    ) -> "custom_types.StanData":
        """Assemble the complete Stan data dictionary.

        :param data: Observations to fit
        :type data: PhenologyData
        :param priors: Prior hyperparameters. Defaults to None (default priors).
        :type priors: Optional[Priors]

        :returns: Data dictionary for Stan
        :rtype: custom_types.StanData
        """
        return data.to_stan_data(priors)

    def get_prior_inits(
        self,
        data: "PhenologyData",
        *,
        chains: "custom_types.Integer",
        priors: Optional[Priors] = None,
        seed: Optional["custom_types.Integer"] = None,
    ) -> list[dict[str, Union[float, list[float]]]]:
        """Draw per-chain initial values from the priors.

        :param data: Observations to be fit. Sets the number of species.
        :type data: PhenologyData
        :param chains: Number of chains to initialize
        :type chains: custom_types.Integer
        :param priors: Priors to draw from. Defaults to None (default priors).
        :type priors: Optional[Priors]
        :param seed: Random seed for reproducible initialization. Defaults to None.
        :type seed: Optional[custom_types.Integer]

        :returns: List of initialization dictionaries, one per chain
        :rtype: list[dict[str, Union[float, list[float]]]]
        """
        draws = draw_prior_predictive(
            priors=priors,
            years=np.array([data.breakpoint]),
            n_draws=chains,
            n_species=data.n_species,
            breakpoint=data.breakpoint,
            seed=seed,
        )
        return [
            {
                **{
                    name: float(draws[name].values[i])
                    for name in HYPERPARAMETER_NAMES
                },
                **{
                    name: draws[name].values[i].tolist()
                    for name in SPECIES_PARAMETER_NAMES
                },
            }
            for i in range(chains)
        ]

    def sample(  # pylint: disable=arguments-differ
        self,
        data: "PhenologyData",
        priors: Optional[Priors] = None,
        *,
        chains: "custom_types.Integer" = DEFAULT_CHAINS,
        parallel_chains: Optional["custom_types.Integer"] = None,
        iter_warmup: "custom_types.Integer" = DEFAULT_ITER_WARMUP,
        iter_sampling: "custom_types.Integer" = DEFAULT_ITER_SAMPLING,
        seed: Optional["custom_types.Integer"] = None,
        inits: Any = None,
        **kwargs,
    ) -> "results.SampleResults":
        """Fit the hinge model to observations with Stan's NUTS sampler.

        :param data: Observations to fit
        :type data: PhenologyData
        :param priors: Prior hyperparameters. Defaults to None (default priors).
        :type priors: Optional[Priors]
        :param chains: Number of chains. Defaults to 4.
        :type chains: custom_types.Integer
        :param parallel_chains: Number of chains run at once. Defaults to None,
            meaning as many as there are CPU cores (capped at ``chains``).
        :type parallel_chains: Optional[custom_types.Integer]
        :param iter_warmup: Warmup iterations per chain. Defaults to 1000.
        :type iter_warmup: custom_types.Integer
        :param iter_sampling: Post-warmup draws per chain. Defaults to 1000.
        :type iter_sampling: custom_types.Integer
        :param seed: Random seed. Defaults to None, in which case a seed is drawn
            from the global random number generator.
        :type seed: Optional[custom_types.Integer]
        :param inits: Initial values passed to CmdStanPy. The string "prior" draws
            initial values from the priors. Defaults to None (Stan defaults).
        :param kwargs: Additional keyword arguments passed to `CmdStanModel.sample`.
            Sampler outputs go to the model's output directory unless
            ``output_dir`` is given.

        :returns: Fitted results
        :rtype: results.SampleResults
        """
        priors = Priors() if priors is None else priors
        seed = utils.get_seed(seed)
        if parallel_chains is None:
            parallel_chains = min(chains, DEFAULT_PARALLEL_CHAINS)

        # If initializing from the prior, we need to draw from the prior
        if isinstance(inits, str) and inits == "prior":
            inits = self.get_prior_inits(data, chains=chains, priors=priors, seed=seed)

        # Run the sampler
        kwargs.setdefault("output_dir", self.output_dir)
        fit = super().sample(
            data=self.gather_inputs(data, priors),
            chains=chains,
            parallel_chains=parallel_chains,
            iter_warmup=iter_warmup,
            iter_sampling=iter_sampling,
            seed=seed,
            inits=inits,
            **kwargs,
        )

        # Build the results object
        return results.SampleResults.from_fit(fit=fit, data=data, priors=priors)

    @property
    def stan_program_path(self) -> str:
        """Get path to the copied Stan program file."""
        return self.stan_executable_path + ".stan"
