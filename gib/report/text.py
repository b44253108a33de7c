"""Human-readable and JSON renderings of cost estimates and batch reports."""

from __future__ import annotations

import json

from gib.schemas.models import BatchReport, CostEstimate

PROMPT_PREVIEW_CHARS = 60


def _preview(prompt: str) -> str:
    if len(prompt) > PROMPT_PREVIEW_CHARS:
        return prompt[:PROMPT_PREVIEW_CHARS] + "..."
    return prompt


def format_estimate_text(estimate: CostEstimate) -> str:
    lines: list[str] = ["", "📊 Cost Estimation", ""]
    lines.append(f"Total jobs: {estimate.total_jobs}")
    lines.append(f"Total images: {estimate.total_images}")
    cost = f"Estimated cost: ${estimate.estimated_cost_min:.4f}"
    if estimate.estimated_cost_min != estimate.estimated_cost_max:
        cost += f" - ${estimate.estimated_cost_max:.4f}"
    lines.append(cost)
    lines.append("")
    lines.append("Breakdown by model:")
    for item in estimate.breakdown:
        lines.append(f"  - {item.count} x {item.model}: {item.images} images = ${item.cost_min:.4f}")
    return "\n".join(lines) + "\n"


def format_report_text(report: BatchReport) -> str:
    """Summary, then succeeded / failed / cancelled jobs in index order."""
    clean = report.failed == 0 and report.cancelled == 0
    icon = "✅" if clean else "⚠️"
    headline = "Completed Successfully" if clean else "Completed with Issues"
    lines: list[str] = ["", f"{icon} Batch Image Generation {headline}", ""]

    lines.append("📊 Summary:")
    lines.append(f"  - Total Jobs: {report.total}")
    lines.append(f"  - Succeeded: {report.succeeded}")
    lines.append(f"  - Failed: {report.failed}")
    lines.append(f"  - Cancelled: {report.cancelled}")
    lines.append(f"  - Duration: {report.total_duration_ms / 1000:.2f}s")
    lines.append(f"  - Started: {report.started_at.astimezone():%Y-%m-%d %H:%M:%S}")
    lines.append(f"  - Finished: {report.finished_at.astimezone():%Y-%m-%d %H:%M:%S}")
    if report.timed_out:
        lines.append("  - Timed out: yes")
    lines.append("")
    lines.append(f"💰 Estimated Cost: ${report.estimated_cost:.4f}")

    succeeded = [r for r in report.results if r.status == "completed"]
    if succeeded:
        lines += ["", "### ✅ Successfully Generated Images"]
        for job in succeeded:
            kind = "Edited" if job.is_edit else "Generated"
            first = job.output_paths[0] if job.output_paths else "Unknown"
            lines += ["", f"{job.index}. {first}", f'   {kind}: "{_preview(job.prompt)}"']
            if len(job.output_paths) > 1:
                lines.append(f"   (+ {len(job.output_paths) - 1} more variants)")
            if job.attempts > 1:
                lines.append(f"   Attempts: {job.attempts}")
            lines.append(f"   Duration: {job.duration_ms / 1000:.2f}s")

    failed = [r for r in report.results if r.status == "failed"]
    if failed:
        lines += ["", "### ❌ Failed Jobs"]
        for job in failed:
            lines += ["", f'{job.index}. "{_preview(job.prompt)}"', f"   Error: {job.error}"]

    cancelled = [r for r in report.results if r.status == "cancelled"]
    if cancelled:
        lines += ["", "### 🚫 Cancelled Jobs"]
        for job in cancelled:
            lines += ["", f'{job.index}. "{_preview(job.prompt)}"', f"   Reason: {job.reason}"]

    return "\n".join(lines) + "\n"


def estimate_to_json(estimate: CostEstimate) -> str:
    return json.dumps(estimate.model_dump(mode="json"), indent=2)


def report_to_json(report: BatchReport) -> str:
    return json.dumps(report.model_dump(mode="json"), indent=2)
