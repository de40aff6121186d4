from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, Field

PipelineStage = Literal["ingest", "match"]


class PipelineEvent(BaseModel):
    """Progress report handed to a stage's `on_progress` callback.

    run_library.py logs these; an editor front end can drive a progress bar
    or refresh its review queue from them.
    """

    stage: PipelineStage
    step: str    # "extracting_features", "matched", "appended"
    progress: float = Field(ge=0.0, le=1.0)
    message: str
    payload: dict | None = None  # e.g. {"file_name": ...} or bucket counts


ProgressCallback = Callable[[PipelineEvent], None]
