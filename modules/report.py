"""
Project-level summary of a recording run.
"""
import logging
from datetime import datetime
from pathlib import Path

from config.settings import REPORT_FILENAME

logger = logging.getLogger(__name__)


def build_report(results: list, project: str, base_url: str) -> str:
    """Markdown summary of FeatureResult objects."""
    succeeded = [r for r in results if r.success]
    failed = [r for r in results if not r.success]

    lines = [
        "# Demo Recording Report",
        "",
        f"- Project: `{project}`",
        f"- Base URL: {base_url}",
        f"- Generated: {datetime.now().isoformat(timespec='seconds')}",
        f"- Features: {len(results)} ({len(succeeded)} succeeded, {len(failed)} failed)",
        "",
        "| Feature | Source | Status | Steps | Skipped | Failed | Video |",
        "|---|---|---|---|---|---|---|",
    ]
    for r in results:
        status = "OK" if r.success else "FAILED"
        video = Path(r.video).name if r.video else "-"
        lines.append(
            f"| {r.feature} | {r.source} | {status} | {r.steps_completed} "
            f"| {r.steps_skipped} | {r.steps_failed} | {video} |"
        )

    lines += ["", "## Successful", ""]
    if succeeded:
        for r in succeeded:
            lines.append(f"- **{r.feature}**: {r.video or 'no video'} "
                         f"({len(r.screenshots)} screenshots, {r.duration:.1f}s)")
    else:
        lines.append("None")

    lines += ["", "## Failed", ""]
    if failed:
        for r in failed:
            lines.append(f"- **{r.feature}**: {r.error or 'unknown error'}")
    else:
        lines.append("None")

    return "\n".join(lines) + "\n"


def write_report(results: list, output_dir: Path, project: str, base_url: str) -> Path:
    path = Path(output_dir) / REPORT_FILENAME
    path.write_text(build_report(results, project, base_url))
    logger.info("Report written to %s", path)
    return path
