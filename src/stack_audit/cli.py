"""Command-line interface for stack-audit."""

import sys
from datetime import datetime, timezone
from pathlib import Path

import click
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.table import Table

from stack_audit import __version__
from stack_audit.analysis import build_stack_report
from stack_audit.config import AuditConfig
from stack_audit.iac.base import ParseError
from stack_audit.iac.cloudformation import CloudFormationParser
from stack_audit.iac.rules.registry import create_registry
from stack_audit.inactive import (
    INACTIVE_CSV_COLUMNS,
    DeploymentChecker,
    default_checks,
    find_inactive,
)
from stack_audit.logger import LOG_LEVELS, configure
from stack_audit.models import StackInfo
from stack_audit.reporter import (
    INACTIVE_REPORT_SUFFIX,
    CSVReporter,
    create_reporter,
    write_reports,
)
from stack_audit.stacks import StackEnumerator, StackFetchError, fetch_all

console = Console(stderr=True)


def _build_config(
    config_path: str | None,
    profiles: tuple[str, ...] = (),
    regions: tuple[str, ...] = (),
    prefer_cache: bool = False,
    output_dir: str | None = None,
    template_dir: str | None = None,
) -> AuditConfig:
    """Load config from file (or defaults) and apply command-line overrides."""
    config = AuditConfig.load(Path(config_path)) if config_path else AuditConfig.from_dict({})

    if profiles:
        config.profiles = list(profiles)
    if regions:
        config.regions = list(regions)
    if prefer_cache:
        config.prefer_cache = True
    if output_dir:
        config.csv_output_dir = output_dir
    if template_dir:
        config.template_output_dir = template_dir
    return config


def _account_options(func):
    """Options shared by commands that talk to AWS."""
    options = [
        click.option(
            "--profile",
            "-p",
            "profiles",
            multiple=True,
            help="AWS profile to audit (repeatable)",
        ),
        click.option(
            "--region",
            "-r",
            "regions",
            multiple=True,
            help="AWS region to audit (repeatable)",
        ),
        click.option(
            "--prefer-cache",
            is_flag=True,
            help="Use previously downloaded templates when available",
        ),
        click.option(
            "--output-dir",
            type=click.Path(file_okay=False),
            help="Directory for CSV output",
        ),
        click.option(
            "--template-dir",
            type=click.Path(file_okay=False),
            help="Directory for downloaded templates",
        ),
        click.option(
            "--config",
            "-c",
            "config_path",
            type=click.Path(exists=True, dir_okay=False),
            help="YAML configuration file",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name="stack-audit")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="info",
    help="Minimum level of log messages to show",
)
def main(log_level: str) -> None:
    """stack-audit - Best-practice audits for deployed CloudFormation stacks."""
    configure(log_level)


@main.command()
@_account_options
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    help="Console output format (CSV files are always written)",
)
def report(
    profiles: tuple[str, ...],
    regions: tuple[str, ...],
    prefer_cache: bool,
    output_dir: str | None,
    template_dir: str | None,
    config_path: str | None,
    format: str,
) -> None:
    """Check every deployed stack against the best-practice rules."""
    config = _build_config(config_path, profiles, regions, prefer_cache, output_dir, template_dir)
    registry = create_registry(config)
    now = datetime.now(timezone.utc)

    console.print(f"[blue]Auditing {len(config.pairs())} account/region pair(s)...[/blue]")
    results = fetch_all(config)

    stack_reports = [
        build_stack_report(stack, now, registry, config)
        for result in results
        for stack in result.stacks
    ]

    written = write_reports(stack_reports, Path(config.csv_output_dir))
    click.echo(create_reporter(format).generate(stack_reports))

    failures = [r for r in results if not r.ok]
    for failure in failures:
        console.print(f"[red]{failure.profile}:{failure.region}: {failure.error}[/red]")

    if written:
        console.print(f"[green]Done. Files written to: {config.csv_output_dir}[/green]")
    else:
        console.print("[yellow]No stacks found, no files written[/yellow]")

    if failures:
        sys.exit(1)


def _collect_templates(paths: tuple[str, ...]) -> list[Path]:
    """Expand directories into the template files they contain.

    Files named explicitly are always checked; files found in directories
    are checked only if they have a template extension.
    """
    extensions = CloudFormationParser.supported_extensions()

    collected = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            collected.extend(
                p for p in sorted(path.rglob("*")) if p.is_file() and p.suffix in extensions
            )
        else:
            collected.append(path)
    return collected


@main.command()
@click.argument("templates", nargs=-1, required=True, type=click.Path(exists=True))
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "json", "csv"]),
    default="table",
    help="Output format",
)
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file",
)
def check(templates: tuple[str, ...], format: str, config_path: str | None) -> None:
    """Check local template files against the best-practice rules.

    TEMPLATES are CloudFormation templates in JSON or YAML, or directories
    containing them.
    """
    config = _build_config(config_path)
    registry = create_registry(config)
    parser = CloudFormationParser()
    now = datetime.now(timezone.utc)

    stack_reports = []
    errors = []
    for path in _collect_templates(templates):
        try:
            template = parser.parse(path.read_text(encoding="utf-8"), str(path))
        except ParseError as e:
            errors.append(str(e))
            continue
        except UnicodeDecodeError:
            errors.append(f"Not a UTF-8 text file: {path}")
            continue
        except OSError as e:
            errors.append(f"Unable to read {path}: {e}")
            continue

        stack = StackInfo(
            stack_id=str(path),
            stack_name=path.name,
            stack_status="LOCAL",
            profile="local",
            region="-",
            template=template,
        )
        stack_reports.append(build_stack_report(stack, now, registry, config))

    click.echo(create_reporter(format).generate(stack_reports))

    for error in errors:
        console.print(f"[red]{error}[/red]")

    failing = [t for r in stack_reports for t in r.failing_types]
    if failing or errors:
        sys.exit(1)


@main.command()
@_account_options
def inactive(
    profiles: tuple[str, ...],
    regions: tuple[str, ...],
    prefer_cache: bool,
    output_dir: str | None,
    template_dir: str | None,
    config_path: str | None,
) -> None:
    """List stacks that look inactive (failed, stale, or temporary)."""
    config = _build_config(config_path, profiles, regions, prefer_cache, output_dir, template_dir)
    reporter = CSVReporter(columns=INACTIVE_CSV_COLUMNS)
    now = datetime.now(timezone.utc)
    failed = False

    for profile, region in config.pairs():
        try:
            stacks = StackEnumerator(profile, region, config).fetch_stacks()
            checker = DeploymentChecker(profile, region, config)
        except StackFetchError as e:
            console.print(f"[red]{e}[/red]")
            failed = True
            continue
        except (ClientError, BotoCoreError) as e:
            console.print(f"[red]AWS error for {profile}:{region}: {e}[/red]")
            failed = True
            continue

        reports = find_inactive(stacks, default_checks(checker), now, config)

        if not reports:
            console.print(f"No data written for {profile}:{region} (no stacks found).")
            continue

        path = Path(config.csv_output_dir) / f"{profile}-{region}{INACTIVE_REPORT_SUFFIX}"
        reporter.write([r.to_dict() for r in reports], path)
        flagged = sum(1 for r in reports if r.reason is not None)
        console.print(f"{path} ({flagged} of {len(reports)} stack(s) possibly inactive)")

    if failed:
        sys.exit(1)


@main.command()
@click.argument("rule_id", required=False)
def rules(rule_id: str | None) -> None:
    """List the best-practice rules, or describe one by RULE_ID."""
    registry = create_registry()

    if rule_id:
        rule = registry.get_by_id(rule_id)
        if rule is None:
            console.print(f"[red]Unknown rule: {rule_id}[/red]")
            sys.exit(1)

        click.echo(f"{rule.RULE_ID} ({rule.SEVERITY.value}): {rule.TITLE}")
        click.echo(f"Resource type: {rule.RESOURCE_TYPE}")
        click.echo(f"\n{rule.DESCRIPTION}\n\nRemediation: {rule.REMEDIATION}")
        return

    table = Table(title="Rules", show_header=True, header_style="bold cyan")
    table.add_column("Rule ID", no_wrap=True)
    table.add_column("Resource Type", no_wrap=True)
    table.add_column("Severity")
    table.add_column("Title")

    for rule in registry.get_all():
        table.add_row(rule.RULE_ID, rule.RESOURCE_TYPE, rule.SEVERITY.value, rule.TITLE)

    Console().print(table)


@main.command()
def version() -> None:
    """Show version information."""
    click.echo(f"stack-audit version {__version__}")


if __name__ == "__main__":
    main()
