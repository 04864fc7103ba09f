"""Text renderings of a ``CoverageReport``."""
import json
from typing import List

from anchored_notes.models.schema import CoverageReport

LOW_COVERAGE = 30.0
MODERATE_COVERAGE = 60.0
STALE_SHOWN = 10


def _format_size(size: int) -> str:
    if size > 1024 * 1024:
        return f"{size / 1024 / 1024:.2f} MB"
    return f"{size / 1024:.1f} KB"


def format_markdown(report: CoverageReport) -> str:
    """Human-readable markdown report."""
    m = report.metrics
    lines: List[str] = ["# Note Coverage Report", "", "## Summary", ""]
    lines.append(
        f"**Overall Coverage**: {m.file_coverage_percentage:.1f}% of eligible files have notes"
    )
    lines += [
        "",
        "### Key Metrics",
        "",
        f"- **Eligible Files**: {m.total_eligible_files} files",
        f"- **Files with Notes**: {m.files_with_notes} files",
        f"- **Coverage**: {m.file_coverage_percentage:.1f}%",
        f"- **Total Notes**: {m.total_notes}",
        f"- **Avg Notes per Covered File**: {m.average_notes_per_covered_file:.1f}",
        "",
    ]

    if m.total_eligible_directories > 0:
        lines += [
            "### Directory Coverage",
            "",
            f"- **Eligible Directories**: {m.total_eligible_directories}",
            f"- **Directories with Notes**: {m.directories_with_notes}",
            f"- **Coverage**: {m.directory_coverage_percentage:.1f}%",
            "",
        ]

    types = sorted(
        report.coverage_by_type.items(), key=lambda item: -item[1].total_files
    )[:10]
    lines += ["## Coverage by File Type", ""]
    if types:
        lines.append("| Extension | Files | Covered | Coverage | Notes |")
        lines.append("|-----------|-------|---------|----------|-------|")
        for ext, info in types:
            lines.append(
                f"| .{ext} | {info.total_files} | {info.files_with_notes} | "
                f"{info.coverage_percentage:.1f}% | {info.total_notes} |"
            )
        lines.append("")

    if report.files_with_most_notes:
        lines += ["## Most Documented Files", ""]
        for i, item in enumerate(report.files_with_most_notes, 1):
            lines.append(f"{i}. `{item.path}` - {item.note_count} notes")
        lines.append("")

    if report.largest_uncovered_files:
        lines += [
            "## Largest Uncovered Files",
            "",
            "These files might benefit from documentation:",
            "",
        ]
        for i, item in enumerate(report.largest_uncovered_files, 1):
            lines.append(f"{i}. `{item.path}` ({_format_size(item.size)})")
        lines.append("")

    stale = report.stale_anchors
    if stale:
        lines += [
            f"## Stale Notes ({len(stale)})",
            "",
            "These notes reference files that no longer exist:",
            "",
        ]
        for entry in stale[:STALE_SHOWN]:
            lines.append(f"- **{entry.note_id}**: `{entry.anchor}`")
            lines.append(f"  > {entry.note_preview}")
        if len(stale) > STALE_SHOWN:
            lines += ["", f"...and {len(stale) - STALE_SHOWN} more stale notes"]
        lines.append("")

    lines += ["## Recommendations", ""]
    if m.file_coverage_percentage < LOW_COVERAGE:
        lines.append(
            "- **Low Coverage**: Consider adding notes to key files to improve knowledge retention"
        )
    elif m.file_coverage_percentage < MODERATE_COVERAGE:
        lines.append(
            "- **Moderate Coverage**: Focus on documenting complex or frequently changed files"
        )
    else:
        lines.append("- **Good Coverage**: Most eligible files carry notes")
    if stale:
        lines.append(
            f"- **Clean up stale notes**: {len(stale)} notes reference non-existent files"
        )
    if report.largest_uncovered_files:
        lines.append(
            "- **Document large files**: Large files without notes might contain "
            "complex logic worth documenting"
        )
    low_types = [
        ext for ext, info in report.coverage_by_type.items()
        if info.coverage_percentage < 20 and info.total_files > 5
    ]
    if low_types:
        lines.append(
            f"- **Focus on file types**: Consider adding notes for .{low_types[0]} files (low coverage)"
        )

    return "\n".join(lines) + "\n"


def format_json(report: CoverageReport) -> str:
    """Compact JSON summary; omits the per-file lists."""
    m = report.metrics
    payload = {
        "summary": {
            "coverage": f"{m.file_coverage_percentage:.1f}%",
            "eligibleFiles": m.total_eligible_files,
            "filesWithNotes": m.files_with_notes,
            "totalNotes": m.total_notes,
        },
        "metrics": m.model_dump(),
        "coverageByType": {
            ext: info.model_dump() for ext, info in report.coverage_by_type.items()
        },
        "topDocumentedFiles": [
            {"path": p.path, "noteCount": p.note_count} for p in report.files_with_most_notes
        ],
        "largestUncoveredFiles": [
            {"path": p.path, "size": p.size} for p in report.largest_uncovered_files
        ],
        "staleNotesCount": len(report.stale_anchors),
    }
    return json.dumps(payload, indent=2)


def format_summary(report: CoverageReport) -> str:
    """One line, e.g. ``Coverage: 50.0% (1/2 files)``."""
    m = report.metrics
    return (
        f"Coverage: {m.file_coverage_percentage:.1f}% "
        f"({m.files_with_notes}/{m.total_eligible_files} files)"
    )
