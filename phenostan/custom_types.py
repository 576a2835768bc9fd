# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.


"""Custom type definitions for PhenoStan.

Aliases used in annotations across the package. NumPy is imported only for type
checking.
"""

from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:

    import numpy as np
    import numpy.typing as npt

# Scalar types
Integer = Union[int, "np.integer"]
"""Type alias for integer values.

A Python or NumPy integer.

:type: Union[int, np.integer]
"""

Float = Union[float, "np.floating"]
"""Type alias for floating-point values.

A Python or NumPy float.

:type: Union[float, np.floating]
"""

# Data types
StanInput = Union[int, float, "npt.NDArray"]
"""Type alias for values that can be passed to Stan in a data dictionary.

:type: Union[int, float, npt.NDArray]
"""

StanData = dict[str, StanInput]
"""Type alias for a complete Stan data dictionary.

:type: dict[str, StanInput]
"""

# Diagnostic output types
ProcessedTestRes = dict[str, tuple[tuple["npt.NDArray", ...], int]]
"""Each test mapped to its failed indices and the number of tests run.

:type: dict[str, tuple[tuple[npt.NDArray, ...], int]]
"""

StrippedTestRes = dict[str, tuple["npt.NDArray", ...]]
"""Each test mapped to its failed indices only.

:type: dict[str, tuple[npt.NDArray, ...]]
"""
