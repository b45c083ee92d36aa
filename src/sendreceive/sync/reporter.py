"""Send/receive result formatting.

- ``format_sync_results`` -- human-readable summary of one run.
- ``results_to_json`` -- structured dict for ``--json`` output.
- ``outcome_label`` -- the one-word outcome used by both.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SyncResults

# ------------------------------------------------------------------
# Outcome
# ------------------------------------------------------------------


def outcome_label(results: SyncResults) -> str:
    """Return ``succeeded``, ``cancelled`` or ``failed``."""
    if results.succeeded:
        return "succeeded"
    if results.cancelled:
        return "cancelled"
    return "failed"


# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_results(
    results: SyncResults, project_name: str = "", include_log: bool = True
) -> str:
    """Format the results of a send/receive as text.

    Args:
        results: Terminal results of a run.
        project_name: Shown in the header when given.
        include_log: Append the run's progress log.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Send/Receive"
    if project_name:
        header += f" for '{project_name}'"
    header += f": {outcome_label(results).upper()}"
    lines.append(header)
    if results.started_at:
        lines.append(f"Started: {results.started_at}")
    if results.completed_at:
        lines.append(f"Completed: {results.completed_at}")
    lines.append("")

    if results.address_used:
        lines.append(f"Repository used: {results.address_used}")
    lines.append(
        "Received changes from others: "
        + ("yes" if results.did_get_changes_from_others else "no")
    )
    if results.warning_encountered:
        lines.append("Warnings were reported; see the log below.")
    if results.error_encountered is not None:
        lines.append(f"Error: {results.error_encountered}")
    lines.append("")

    if include_log and results.log:
        lines.append("Log:")
        for entry in results.log.splitlines():
            lines.append(f"  {entry}")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def results_to_json(results: SyncResults) -> dict:
    """Convert results to a dict suitable for ``json.dumps``.

    The error, if any, is reduced to its type name and message.
    """
    error: dict | None = None
    if results.error_encountered is not None:
        exc = results.error_encountered
        error = {"type": type(exc).__name__, "message": str(exc)}
        detail = getattr(exc, "detail", "")
        if detail:
            error["detail"] = detail

    return {
        "outcome": outcome_label(results),
        "succeeded": results.succeeded,
        "cancelled": results.cancelled,
        "warning_encountered": results.warning_encountered,
        "did_get_changes_from_others": results.did_get_changes_from_others,
        "address_used": results.address_used,
        "error": error,
        "started_at": results.started_at,
        "completed_at": results.completed_at,
        "log": results.log.splitlines(),
    }
