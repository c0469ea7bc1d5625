"""
Error taxonomy for the youth substance-use analysis.

Every error is terminal for the analysis step that raised it. The step name
and input size travel with the exception so a failed run can be diagnosed
from the message alone.
"""


class AnalysisError(Exception):
    """Base class for analysis failures, carrying step/size context."""

    def __init__(self, message: str, step: str | None = None,
                 n_records: int | None = None):
        self.step = step
        self.n_records = n_records
        context = []
        if step is not None:
            context.append(f"step={step}")
        if n_records is not None:
            context.append(f"n_records={n_records}")
        if context:
            message = f"{message} [{', '.join(context)}]"
        super().__init__(message)


class ConfigurationError(AnalysisError, ValueError):
    """Unknown substance, target kind, model or policy requested."""


class InsufficientDataError(AnalysisError, ValueError):
    """A split or filter left too few records to continue."""


class ShapeMismatchError(AnalysisError, ValueError):
    """Predictions and truth vectors differ in length."""


class EmptyInputError(AnalysisError, ValueError):
    """Evaluator received an empty held-out set."""
