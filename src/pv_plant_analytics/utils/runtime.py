# stdlib
from typing import Optional
# projectlib
from pv_plant_analytics.utils.errors import PipelineCancelled
from pv_plant_analytics.utils.typing import CancelCheck


def check_cancelled(should_cancel: Optional[CancelCheck], stage: str) -> None:
    """Raise `PipelineCancelled` before `stage` if cancellation was requested."""
    if should_cancel is not None and should_cancel():
        raise PipelineCancelled(f"Cancelled before {stage}.")
