"""Command-line entry point: ``blitzgen <project-name> [options]``."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from pydantic import ValidationError
from rich.panel import Panel
from rich.table import Table

from blitzgen import __version__
from blitzgen.bootstrap import BootstrapResult, bootstrap_project, run_preflight_checks
from blitzgen.config import Config
from blitzgen.errors import ScaffoldError
from blitzgen.features import OPTIONAL_FEATURES, FeatureOptions
from blitzgen.models import DEFAULT_DESCRIPTION, ProjectOptions, validate_project_name
from blitzgen.scaffolder import ProjectGenerator
from blitzgen.scaffolder.exclusions import compute_exclusions
from blitzgen.scaffolder.generator import GenerationResult
from blitzgen.utils import (
    console,
    format_duration,
    print_error,
    print_success,
    print_summary_table,
    print_warning,
)

CURRENT_DIR = "."


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blitzgen",
        description="Create a new project from the Blitzpack full-stack template",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  blitzgen my-app\n"
            "  blitzgen my-app --no-testing --no-admin\n"
            "  blitzgen . --description 'Internal dashboard' --force\n"
        ),
    )
    parser.add_argument(
        "project_name",
        help="Project name, also used as the directory name ('.' for the current directory)",
    )
    parser.add_argument(
        "--description", "-d",
        default=DEFAULT_DESCRIPTION,
        help="Project description",
    )
    for feature in OPTIONAL_FEATURES:
        parser.add_argument(
            f"--no-{feature.key.value}",
            dest=f"no_{feature.key.value}",
            action="store_true",
            help=f"Leave out {feature.name} ({feature.description})",
        )
    parser.add_argument("--skip-git", action="store_true", help="Do not initialise a git repository")
    parser.add_argument("--skip-install", action="store_true", help="Do not run pnpm install")
    parser.add_argument(
        "--setup",
        action="store_true",
        help="Start the database with docker compose and run migrations",
    )
    parser.add_argument("--dry-run", action="store_true", help="Show what would be created and exit")
    parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Generate into a directory that is not empty",
    )
    parser.add_argument(
        "--template-archive",
        type=Path,
        default=None,
        help="Use a local .tar.gz of the template instead of downloading it",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Itemise template drift")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_options(args: argparse.Namespace, cwd: Path | None = None) -> ProjectOptions:
    """Turn parsed arguments into ``ProjectOptions``.

    Raises:
        ValueError: The project name is invalid.
    """
    cwd = cwd or Path.cwd()
    use_current_dir = args.project_name == CURRENT_DIR
    if use_current_dir:
        name = cwd.name
        target = cwd
    else:
        name = args.project_name
        target = cwd / name

    problems = validate_project_name(name)
    if problems:
        raise ValueError("; ".join(problems))

    features = FeatureOptions(
        **{feature.key.value: not getattr(args, f"no_{feature.key.value}") for feature in OPTIONAL_FEATURES}
    )
    return ProjectOptions(
        project_name=name,
        project_description=args.description,
        target_dir=target,
        features=features,
        use_current_dir=use_current_dir,
        skip_git=args.skip_git,
        skip_install=args.skip_install,
        run_setup=args.setup,
        dry_run=args.dry_run,
        force=args.force,
    )


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


def print_plan(options: ProjectOptions, config: Config) -> None:
    """Describe what a real run would do."""
    console.print(Panel("[bold]Dry run: no files will be written[/bold]", style="cyan"))

    print_summary_table(
        {
            "Directory": str(options.target_dir),
            "Name": options.project_name,
            "Slug": options.project_slug,
            "Description": options.project_description,
            "Template": config.template_locator,
        },
        title="Project",
    )

    features = Table(title="Features", show_header=True, header_style="bold cyan")
    features.add_column("Feature")
    features.add_column("Included", justify="center")
    for feature in OPTIONAL_FEATURES:
        included = options.features.is_enabled(feature.key)
        features.add_row(feature.name, "[green]yes[/green]" if included else "[red]no[/red]")
    console.print(features)

    excluded = compute_exclusions(options.features)
    if excluded:
        console.print(f"[dim]{len(excluded)} template paths would be removed[/dim]")

    steps = ["Download template", "Customise project files", "Create .env.local files"]
    if not options.skip_git:
        steps.append("Initialise git repository")
    if not options.skip_install:
        steps.append("Install dependencies (pnpm install)")
    if options.run_setup:
        steps.append("Start database and run migrations")
    console.print()
    for index, step in enumerate(steps, start=1):
        console.print(f"  {index}. {step}")


def print_drift(result: GenerationResult, verbose: bool) -> None:
    report = result.report
    if not report.has_drift:
        return
    console.print(
        f"[dim]Template drift: {report.skipped_count} removal rules skipped, "
        f"{report.missing_count} excluded paths missing, "
        f"{len(report.residual_references)} residual references[/dim]"
    )
    if not verbose:
        return
    for name in report.rules_skipped:
        console.print(f"[dim]  rule skipped: {name}[/dim]")
    for path in report.paths_missing:
        console.print(f"[dim]  path missing: {path}[/dim]")
    for reference in report.residual_references:
        console.print(f"[dim]  residual: {reference}[/dim]")


def print_next_steps(options: ProjectOptions, bootstrap: BootstrapResult, result: GenerationResult) -> None:
    if bootstrap.failed:
        print_warning(
            f"Some setup steps failed ({', '.join(bootstrap.failed)}); run them by hand as listed below."
        )

    lines = [
        f"Project   : {options.project_name}",
        f"Location  : {result.project_root}",
        f"Files     : {result.file_count}",
        f"Duration  : {format_duration(result.duration)}",
    ]
    if bootstrap.database_ready:
        lines.append("Database  : running, migrations applied")
    lines.extend(["", "Next steps:"])
    if not options.use_current_dir:
        lines.append(f"  cd {result.project_root.name}")
    lines.extend(f"  {step}" for step in bootstrap.manual_steps)
    lines.append("  pnpm dev")

    console.print()
    console.print(
        Panel(
            "\n".join(lines),
            title="[bold]Project Created[/bold]",
            border_style="green",
        )
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(options: ProjectOptions, config: Config, verbose: bool) -> None:
    generator = ProjectGenerator(options, config)
    result = await generator.generate()
    print_success(f"Created {options.project_name} in {result.project_root}")
    print_drift(result, verbose)

    bootstrap = await bootstrap_project(result.project_root, options, config.command_timeout)
    print_next_steps(options, bootstrap, result)


def main(argv: list[str] | None = None) -> int:
    """CLI entry point; returns the process exit code."""
    args = build_parser().parse_args(argv)

    try:
        options = resolve_options(args)
        config = Config.from_env()
        if args.template_archive is not None:
            config = config.model_copy(update={"template_archive": args.template_archive.resolve()})
    except (ValueError, ValidationError) as exc:
        print_error(f"Error: {exc}")
        return 1

    if options.dry_run:
        print_plan(options, config)
        return 0

    if not options.skip_install:
        missing = run_preflight_checks()
        if missing:
            print_error(f"Error: required tools not found on PATH: {', '.join(missing)}")
            print_warning("Install them, or pass --skip-install to generate without installing.")
            return 1

    try:
        asyncio.run(_run(options, config, args.verbose))
    except ScaffoldError as exc:
        print_error(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        print_warning("\nAborted.")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
