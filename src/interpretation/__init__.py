"""Per-framework interpretation jobs and prompts."""

from src.interpretation.job import parse_structured_output, run_interpretation_job, stream_interpretation
from src.interpretation.schemas import InterpretationResult, JobError, JobErrorKind, JobOutcome

__all__ = [
    "InterpretationResult",
    "JobError",
    "JobErrorKind",
    "JobOutcome",
    "parse_structured_output",
    "run_interpretation_job",
    "stream_interpretation",
]
