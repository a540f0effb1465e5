class PipelineError(RuntimeError):
    """Base class for failures that abort a forecast or battery run."""


class MissingInputError(PipelineError):
    """
    A required input is absent or empty.

    Raised for a missing operational file, no usable weather data, a
    missing station configuration, or an empty historical overlap.
    """


class InferenceError(PipelineError):
    """The model is unavailable or returned output of the wrong shape."""


class PipelineCancelled(PipelineError):
    """The caller requested cancellation between two pipeline stages."""
