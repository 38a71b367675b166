import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from .changelog import PACKAGE_LIST_PATH, ChangelogRequest, generate_changelog
from .config import (
    EMPTY_PREFIX_WARNING,
    ENVIRONMENT_VARIABLES,
    ChangelogConfig,
    apply_config_section,
    config_warnings,
    create_sample_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .differ import diff as diff_package_lists
from .error_handling import ChangelogError, setup_error_handling
from .package_list import load_old_package_list, load_package_list
from .renderer import JobIdentity
from .reporting import ChangelogReporter, classification_to_dict
from .structured_logging import configure_logging

__version__ = "1.0.0"

console = Console()


def _error_console() -> Console:
    return Console(stderr=True)


def _setup_logging(log_level: str) -> None:
    configure_logging(log_level)
    setup_error_handling(getattr(logging, log_level.upper(), logging.WARNING))


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.pass_context
def cli(ctx, version):
    """
    grml-changelog: changelogs for grml-live builds

    Diffs the dpkg package lists of two builds and collects the git history
    of every changed package that matches a configured prefix.
    """
    if version:
        console.print(f"grml-changelog version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@cli.command()
@click.argument(
    "workspace", type=click.Path(exists=True, file_okay=False, writable=True)
)
@click.option(
    "--package-list",
    type=click.Path(dir_okay=False),
    help=f"Package list of this build (default: <workspace>/{PACKAGE_LIST_PATH})",
)
@click.option(
    "--old-package-list",
    type=click.Path(dir_okay=False),
    help="Package list of the previous build (default: <workspace>/<old-list-name>)",
)
@click.option("--output", "-o", "output_filename", help="Changelog file name in the workspace")
@click.option("--old-list-name", help="File name of the previous package list")
@click.option("--package-prefix", help="Name prefix of packages tracked in git")
@click.option("--git-url-base", help="Base URL of the git repositories of tracked packages")
@click.option("--job-name", envvar="JOB_NAME", default="", help="Job name for the header")
@click.option("--build-id", envvar="BUILD_ID", default="", help="Build id for the header")
@click.option("--timeout", type=int, help="Timeout in seconds for each git command")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file (TOML or JSON)",
)
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-critical output")
@click.option("--verbose", "-v", is_flag=True, help="Log every git command")
def generate(
    workspace: str,
    package_list: Optional[str],
    old_package_list: Optional[str],
    output_filename: Optional[str],
    old_list_name: Optional[str],
    package_prefix: Optional[str],
    git_url_base: Optional[str],
    job_name: str,
    build_id: str,
    timeout: Optional[int],
    config_path: Optional[str],
    quiet: bool,
    verbose: bool,
) -> None:
    """
    Generate the changelog for a grml-live build workspace.

    Examples:

      grml-changelog generate . --package-prefix grml- --git-url-base git://git.grml.org

      grml-changelog generate /srv/build -o changes.txt --job-name grml64 --build-id 42
    """
    try:
        config = load_config(
            Path(config_path) if config_path else None,
            output_filename=output_filename,
            old_list_name=old_list_name,
            package_prefix=package_prefix,
            git_url_base=git_url_base,
            command_timeout_seconds=timeout,
            log_level="DEBUG" if verbose else None,
        )
        _setup_logging(config.log_level)

        if not quiet:
            for warning in config_warnings(config):
                _error_console().print(f"⚠️  {warning}", style="yellow")

        request = ChangelogRequest.for_workspace(
            workspace,
            job_identity=JobIdentity(job_name, build_id),
            package_list=package_list,
            old_package_list=old_package_list,
        )
        outcome = generate_changelog(request, config)

        if not quiet:
            reporter = ChangelogReporter(console)
            reporter.print_classification(outcome.classification)
            reporter.print_outcome(outcome)

    except KeyboardInterrupt:
        _error_console().print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except ChangelogError as e:
        _error_console().print(f"❌ Error: {e}", style="red")
        sys.exit(1)


@cli.command()
@click.argument("new_list", type=click.Path(exists=True, dir_okay=False))
@click.argument("old_list", type=click.Path(dir_okay=False), required=False)
@click.option("--package-prefix", default="", help="Name prefix of tracked packages")
@click.option(
    "--output-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default="console",
    help="Output format for results",
    show_default=True,
)
def diff(new_list: str, old_list: Optional[str], package_prefix: str, output_format: str):
    """
    Compare two package lists without touching git.

    OLD_LIST may be omitted or missing, in which case every package is new.
    """
    try:
        packages = load_package_list(new_list)
        packages_old = load_old_package_list(old_list) if old_list else None
    except ChangelogError as e:
        _error_console().print(f"❌ Error: {e}", style="red")
        sys.exit(1)

    classification = diff_package_lists(packages_old, packages, package_prefix)
    warnings = [] if package_prefix else [EMPTY_PREFIX_WARNING]

    if output_format == "json":
        results = classification_to_dict(classification)
        results["warnings"] = warnings
        click.echo(json.dumps(results, indent=2))
    else:
        for warning in warnings:
            _error_console().print(f"⚠️  {warning}", style="yellow")
        ChangelogReporter(console).print_classification(classification)


@cli.command()
def info():
    """Show inputs, outputs and configuration sources."""
    env_lines = "\n".join(
        f"• [cyan]{env_name}[/cyan] - {key}"
        for env_name, key in ENVIRONMENT_VARIABLES.items()
    )
    info_text = f"""
[bold blue]📥 Inputs:[/bold blue]

• [green]{PACKAGE_LIST_PATH}[/green] - package list of this build (required)
• [green]dpkg.list.old[/green] - package list of the previous build (optional)

[bold blue]📤 Outputs:[/bold blue]

• [green]changelog.txt[/green] - the rendered changelog
• [green]packages/<name>.git[/green] - git mirrors of tracked packages, reused by later runs

[bold blue]🌍 Environment Variables:[/bold blue]

{env_lines}
• [cyan]JOB_NAME[/cyan], [cyan]BUILD_ID[/cyan] - job identity for the header

[bold blue]📄 Configuration Files:[/bold blue]

• [green].grml-changelog.toml[/green] or [green].grml-changelog.json[/green] - project-level config
• [green]~/.config/grml-changelog/config.toml[/green] - user-level config
"""
    console.print(
        Panel(info_text, title="[bold]grml-changelog Information[/bold]", border_style="blue")
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".grml-changelog.toml",
    help="Path where to create the config file",
    show_default=True,
)
@click.option("--force", is_flag=True, help="Overwrite existing config file")
def config_init(path: str, force: bool):
    """Create a sample configuration file."""
    config_path = Path(path)

    if config_path.exists() and not force:
        console.print(f"⚠️  Config file already exists at {config_path}", style="yellow")
        console.print("Use --force to overwrite", style="dim")
        return

    try:
        config_path.write_text(create_sample_config(), encoding="utf-8")
    except OSError as e:
        _error_console().print(f"❌ Failed to create config file: {e}", style="red")
        sys.exit(1)

    console.print(f"✅ Created configuration file at {config_path}", style="green")


@config.command("show")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Configuration file (TOML or JSON)",
)
def config_show(config_path: Optional[str]):
    """Show the effective configuration."""
    try:
        current_config = load_config(Path(config_path) if config_path else None)
    except ChangelogError as e:
        _error_console().print(f"❌ Error: {e}", style="red")
        sys.exit(1)

    console.print(Panel("[bold blue]🔧 Effective Configuration[/bold blue]", border_style="blue"))
    for key, value in current_config.to_dict().items():
        console.print(f"  {key}: {value!r}")
    for warning in config_warnings(current_config):
        console.print(f"⚠️  {warning}", style="yellow")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    try:
        config_data = load_config_file(Path(config_file)) or {}
        candidate = apply_config_section(ChangelogConfig(), config_data, config_file)
    except ChangelogError as e:
        _error_console().print(f"❌ Configuration validation failed: {e}", style="red")
        sys.exit(1)

    errors = validate_config_values(candidate)
    if errors:
        for error in errors:
            _error_console().print(f"❌ {error}", style="red")
        sys.exit(1)

    for warning in config_warnings(candidate):
        console.print(f"⚠️  {warning}", style="yellow")
    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
