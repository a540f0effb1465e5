# stdlib
from typing import Callable, Literal, Union
from pathlib import Path
# thirdpartylib
import numpy as np
from numpy.typing import NDArray

# Verbosity for classes, functions, methods, etc.
type Verbosity = Literal[0, 1, 2]
# Mode for opening documents
type ReadMode = Literal["r"]
type WriteMode = Literal["w", "x"]
type OpenMode = Literal[ReadMode, WriteMode]
# Type alias for file/folder paths
type Address = Union[str, Path]
# Numeric arrays passed between feature, model and post-processing stages
type FloatArray = NDArray[np.float64]
# Polled between pipeline stages, True requests cancellation
type CancelCheck = Callable[[], bool]
# Receives every emitted log message
type ProgressListener = Callable[[str], None]
