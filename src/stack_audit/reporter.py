"""Stack audit report generators."""

import csv
import io
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from stack_audit.models import StackReport

logger = logging.getLogger(__name__)

# File name suffix of inactive stack reports, which share the output directory
INACTIVE_REPORT_SUFFIX = "-stacks.csv"

# Columns of the stack report CSV, one row per (stack, resource type)
CSV_COLUMNS = [
    "ReportTime",
    "StackId",
    "StackName",
    "StackStatus",
    "CreationTime",
    "LastUpdatedTime",
    "Profile",
    "Region",
    "DefinedWithGuCDK",
    "GuCDKVersion",
    "ResourceType",
    "AllResourcesFollowBestPractice",
]


def flatten(stack_reports: Iterable[StackReport]) -> list[dict[str, Any]]:
    """Unwind stack reports into one record per (stack, resource type).

    A stack without resource types still yields exactly one record, with a
    blank resource type. Unassessed types keep a None verdict.
    """
    records = []
    for report in stack_reports:
        base = report.to_dict()
        resource_types = base.pop("ResourceTypes")

        if not resource_types:
            records.append({**base, "ResourceType": None, "AllResourcesFollowBestPractice": None})
            continue

        for resource_type in resource_types:
            records.append(
                {
                    **base,
                    "ResourceType": resource_type["ResourceType"],
                    "AllResourcesFollowBestPractice": resource_type.get("FollowsBestPractice"),
                }
            )
    return records


def format_value(value: Any) -> str:
    """Render a record value as a CSV cell.

    None becomes a blank cell, never ``false``.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def clean_report_files(path: Path) -> list[Path]:
    """Create the output directory and remove stack reports from earlier runs.

    Only top-level ``*.csv`` files are removed, and inactive stack reports
    (``*-stacks.csv``) are kept. Subdirectories and other files are left alone.

    Returns:
        Paths of the files removed.
    """
    path.mkdir(parents=True, exist_ok=True)

    removed = []
    for report in sorted(path.glob("*.csv")):
        if not report.is_file() or report.name.endswith(INACTIVE_REPORT_SUFFIX):
            continue
        logger.info("Removing previous report %s", report)
        report.unlink()
        removed.append(report)
    return removed


class ReportGenerator(ABC):
    """Abstract base class for report generators."""

    @abstractmethod
    def generate(self, stack_reports: Sequence[StackReport]) -> str:
        """Generate a report from stack reports.

        Args:
            stack_reports: The per-stack results to report.

        Returns:
            Formatted report as a string.
        """
        pass


class CSVReporter(ReportGenerator):
    """Generate row-oriented CSV reports."""

    def __init__(self, columns: Optional[Sequence[str]] = None) -> None:
        self.columns = list(columns or CSV_COLUMNS)

    def generate(self, stack_reports: Sequence[StackReport]) -> str:
        """Generate CSV text for stack reports."""
        return self.render(flatten(stack_reports))

    def render(self, records: Iterable[dict[str, Any]]) -> str:
        """Render flat records using the configured columns."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(self.columns)
        for record in records:
            writer.writerow([format_value(record.get(column)) for column in self.columns])
        return buffer.getvalue()

    def write(self, records: Iterable[dict[str, Any]], path: Path) -> Path:
        """Write flat records to a CSV file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.render(records), encoding="utf-8")
        logger.info("Wrote %s", path)
        return path


class JSONReporter(ReportGenerator):
    """Generate JSON format reports."""

    def __init__(self, indent: int = 2) -> None:
        """Initialize JSON reporter.

        Args:
            indent: JSON indentation level.
        """
        self.indent = indent

    def generate(self, stack_reports: Sequence[StackReport]) -> str:
        """Generate JSON report."""
        return json.dumps([r.to_dict() for r in stack_reports], indent=self.indent)


class TableReporter(ReportGenerator):
    """Generate rich table format reports for CLI output."""

    VERDICT_STYLES = {
        True: ("PASS", "green"),
        False: ("FAIL", "red bold"),
        None: ("-", "dim"),
    }

    def __init__(self) -> None:
        self.console = Console(record=True, file=io.StringIO(), width=140)

    def generate(self, stack_reports: Sequence[StackReport]) -> str:
        """Generate table report."""
        self._render_summary(stack_reports)
        if stack_reports:
            self._render_stacks(stack_reports)
        return self.console.export_text()

    def _render_summary(self, stack_reports: Sequence[StackReport]) -> None:
        """Render summary panel."""
        type_reports = [t for r in stack_reports for t in r.resource_types]
        assessed = [t for t in type_reports if t.assessed]
        failing = [t for t in assessed if not t.follows_best_practice]
        provenance = sum(1 for r in stack_reports if r.defined_with_provenance_tag)

        summary_text = Text()
        summary_text.append(f"Stacks: {len(stack_reports)}\n")
        summary_text.append(f"Stacks defined with GuCDK: {provenance}\n")
        summary_text.append(f"Resource types assessed: {len(assessed)}\n")
        summary_text.append("Failing resource types: ", style="bold")
        summary_text.append(f"{len(failing)}", style="red" if failing else "green")

        self.console.print(
            Panel(summary_text, title="Stack Audit Summary", border_style="blue")
        )

    def _render_stacks(self, stack_reports: Sequence[StackReport]) -> None:
        """Render one row per stack and resource type."""
        table = Table(
            title="Resource Types",
            show_header=True,
            header_style="bold cyan",
        )
        table.add_column("Stack", width=30)
        table.add_column("Account", width=22)
        table.add_column("Resource Type", width=40)
        table.add_column("Best Practice", width=13)

        for report in stack_reports:
            account = f"{report.stack.profile}:{report.stack.region}"
            if not report.resource_types:
                table.add_row(report.stack.stack_name, account, Text("(no template)", style="dim"), "")
                continue
            for type_report in report.resource_types:
                label, style = self.VERDICT_STYLES[type_report.follows_best_practice]
                table.add_row(
                    report.stack.stack_name,
                    account,
                    type_report.resource_type,
                    Text(label, style=style),
                )

        self.console.print(table)


def create_reporter(format: str) -> ReportGenerator:
    """Create a reporter for the specified format.

    Args:
        format: Output format ('csv', 'json', 'table').

    Returns:
        Appropriate ReportGenerator instance.

    Raises:
        ValueError: If format is not supported.
    """
    if format == "csv":
        return CSVReporter()
    elif format == "json":
        return JSONReporter()
    elif format == "table":
        return TableReporter()
    else:
        raise ValueError(f"Unsupported format: {format}. Use 'csv', 'json', or 'table'.")


def write_reports(stack_reports: Sequence[StackReport], output_dir: Path) -> list[Path]:
    """Write one CSV per profile and a combined CSV.

    Stack reports from earlier runs are removed first (see
    ``clean_report_files``). Nothing is written when there
    are no stack reports.

    Returns:
        Paths of the files written.
    """
    clean_report_files(output_dir)
    if not stack_reports:
        logger.info("No stacks found, no CSV written")
        return []

    reporter = CSVReporter()
    by_profile: dict[str, list[StackReport]] = {}
    for report in stack_reports:
        by_profile.setdefault(report.stack.profile, []).append(report)

    written = [
        reporter.write(flatten(reports), output_dir / f"{profile}.csv")
        for profile, reports in by_profile.items()
    ]
    written.append(reporter.write(flatten(stack_reports), output_dir / "combined.csv"))
    return written
