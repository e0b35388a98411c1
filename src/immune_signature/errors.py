"""Exception hierarchy for the immune-signature pipeline.

Every failure aborts the run. Each error carries the pipeline stage it was
raised from and, where it applies, what was expected versus what was found,
so the operator can tell a data problem from a configuration problem.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    stage = "pipeline"

    def __init__(
        self,
        message: str,
        stage: Optional[str] = None,
        expected: Any = None,
        found: Any = None,
    ):
        self.message = message
        if stage is not None:
            self.stage = stage
        self.expected = expected
        self.found = found
        super().__init__(self._render())

    def _render(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.expected is not None or self.found is not None:
            text += f" (expected: {self.expected}, found: {self.found})"
        return text


class RetrievalError(PipelineError):
    """Remote query or download failed, or returned nothing usable."""

    stage = "retrieval"


class DataShapeError(PipelineError):
    """Counts, gene metadata and sample metadata do not line up."""

    stage = "assembly"


class EmptyPanelError(PipelineError):
    """None of the marker genes were found in the expression matrix."""

    stage = "scoring"


class InsufficientGroupsError(PipelineError):
    """The outcome label does not split samples into exactly two groups."""

    stage = "comparison"
