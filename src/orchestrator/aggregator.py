"""Pure merge of partial updates into an interpretation snapshot.

Nothing here mutates its inputs. Entries that an update does not touch
are carried over as the same objects, so callers can compare snapshots
by identity to find what changed.
"""

from src.orchestrator.schemas import (
    FrameworkState,
    Interpretation,
    InterpretationUpdate,
    JobStatus,
    RunOutcome,
    RunSummary,
)
from src.retrieval.schemas import Citation


def union_citations(existing: list[Citation], incoming: list[Citation]) -> list[Citation]:
    """Append incoming citations whose ids are not already present.

    Returns `existing` itself when nothing new arrives.
    """
    seen = {c.id for c in existing}
    added = []
    for citation in incoming:
        if citation.id not in seen:
            seen.add(citation.id)
            added.append(citation)
    if not added:
        return existing
    return [*existing, *added]


def replace_frameworks(
    existing: list[FrameworkState],
    updates: list[FrameworkState],
) -> list[FrameworkState]:
    """Replace entries by id; ids not yet present are appended in update order."""
    if not updates:
        return existing

    latest = {}
    for entry in updates:
        latest[entry.id] = entry  # last one wins within a single update

    existing_ids = {entry.id for entry in existing}
    merged = [latest.get(entry.id, entry) for entry in existing]
    for framework_id, entry in latest.items():
        if framework_id not in existing_ids:
            merged.append(entry)
    return merged


def merge(current: Interpretation, update: InterpretationUpdate) -> Interpretation:
    """Return a new snapshot with the update applied.

    Citations are unioned by id and never dropped. Each framework in the
    update replaces exactly the entry with the same id. If the update
    changes nothing, `current` is returned unchanged.
    """
    changes = {}

    if update.citations:
        citations = union_citations(current.citations, update.citations)
        if citations is not current.citations:
            changes["citations"] = citations

    if update.frameworks:
        changes["frameworks"] = replace_frameworks(current.frameworks, update.frameworks)

    if not changes:
        return current
    return current.model_copy(update=changes)


def summarize_run(interpretation: Interpretation) -> RunSummary:
    """Compose the final message for a run from its framework statuses."""
    statuses = [entry.status for entry in interpretation.frameworks]
    total = len(statuses)
    complete = sum(1 for s in statuses if s == JobStatus.COMPLETE)
    failed = sum(1 for s in statuses if s == JobStatus.ERROR)

    if total and complete == total:
        outcome = RunOutcome.ALL_SUCCEEDED
        message = (
            "Here are interpretations of your question about Wittgenstein from "
            f"{total} philosophical traditions. Each framework offers a different lens "
            "on the passages cited below."
        )
    elif complete:
        outcome = RunOutcome.PARTIAL
        message = (
            f"I was able to generate {complete} of {total} interpretations, though not all "
            "frameworks completed successfully. You can retry the failed ones individually."
        )
    else:
        outcome = RunOutcome.ALL_FAILED
        message = (
            "Sorry, I encountered an error while generating interpretations. "
            "Please try again, or retry individual frameworks."
        )

    return RunSummary(total=total, complete=complete, failed=failed, outcome=outcome, message=message)
