"""CLI interface for repograph."""

import functools
import json
import sys
from pathlib import Path
from typing import Callable

import click
import yaml

from repograph.cli.formatters import OutputFormatter, payload_stats, write_output
from repograph.core.config import USER_CONFIG_PATH, Config
from repograph.core.errors import RepographError
from repograph.core.logging import configure_logging
from repograph.schemas.graph import GraphPayload
from repograph.schemas.heatmap import HeatmapGranularity


def common_options(command: Callable) -> Callable:
    """Output and logging options shared by every graph command."""
    options = [
        click.option(
            "--output",
            "-o",
            type=click.Path(writable=True),
            default=None,
            help="Output file (default: stdout)",
        ),
        click.option(
            "--format",
            "-f",
            "output_format",
            type=click.Choice(["json", "summary"], case_sensitive=False),
            default=None,
            help="Output format (default: json, or output_format from config)",
        ),
        click.option(
            "--verbose/--no-verbose",
            "-v/--no-v",
            default=None,
            help="Show progress on stderr (default: enabled)",
        ),
        click.option(
            "--log-level",
            default=None,
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
            help="Logging level (default: INFO)",
        ),
        click.option(
            "--log-file",
            type=click.Path(),
            default=None,
            help="Path to log file (default: stderr)",
        ),
        click.option(
            "--json-logging",
            is_flag=True,
            default=None,
            help="Output logs in JSON format",
        ),
    ]
    for option in reversed(options):
        command = option(command)
    return command


def _load_config(**cli_args) -> Config:
    config = Config.load(cli_args=cli_args)
    configure_logging(level=config.log_level, json_output=config.json_logging, log_file=config.log_file)
    return config


def _emit(payload: GraphPayload, config: Config, output: str | None) -> None:
    formatter = OutputFormatter()
    content = formatter.format(payload, config.output_format)
    written = write_output(content, output)
    if written:
        click.echo(f"Output written to: {written}", err=True)
        if config.verbose:
            stats = payload_stats(payload)
            click.echo(
                f"  {stats['nodes']} nodes, {stats['edges']} edges, {stats['warnings']} warnings",
                err=True,
            )
    else:
        click.echo(content)


def graph_command(run: Callable) -> Callable:
    """Load config, build the pipeline, run the command and turn RepographError into exit code 1."""

    @functools.wraps(run)
    def wrapper(output, output_format, verbose, log_level, log_file, json_logging, **kwargs):
        config = _load_config(
            output_format=output_format.lower() if output_format else None,
            verbose=verbose,
            log_level=log_level.upper() if log_level else None,
            log_file=log_file,
            json_logging=json_logging,
        )
        try:
            payload = run(config, **kwargs)
        except RepographError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        _emit(payload, config, output)

    return wrapper


def _pipeline(roots, config: Config, **kwargs):
    from repograph.analysis.pipeline import GraphPipeline

    return GraphPipeline([Path(root) for root in roots], config=config, verbose=config.verbose, **kwargs)


def _default_roots(roots: tuple[str, ...]) -> list[str]:
    return list(roots) if roots else [str(Path.cwd())]


@click.group()
@click.version_option(package_name="repograph")
def main():
    """
    repograph - dependency, architecture and Git co-change graphs for source workspaces.

    Every graph command prints a JSON payload (camelCase keys) or, with
    --format summary, a set of tables.

    Use 'repograph COMMAND --help' for detailed usage information.
    """
    pass


@main.command("file")
@click.argument("path", type=click.Path(exists=False, dir_okay=False))
@click.option(
    "--root",
    "roots",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Workspace folder (repeatable, default: current directory)",
)
@common_options
@graph_command
def file_command(config: Config, path: str, roots: tuple[str, ...]):
    """
    Import graph reachable from one source file.

    Examples:

      repograph file src/index.ts --root .
    """
    return _pipeline(_default_roots(roots), config, use_symbols=False).file_graph(path)


@main.command("folder")
@click.argument("path", type=click.Path(exists=False, file_okay=False))
@click.option(
    "--root",
    "roots",
    multiple=True,
    type=click.Path(exists=True, file_okay=False),
    help="Workspace folder (repeatable, default: current directory)",
)
@common_options
@graph_command
def folder_command(config: Config, path: str, roots: tuple[str, ...]):
    """Import graph of every source file under a folder."""
    return _pipeline(_default_roots(roots), config, use_symbols=False).folder_graph(path)


@main.command("workspace")
@click.argument("roots", nargs=-1, type=click.Path(exists=True, file_okay=False))
@common_options
@graph_command
def workspace_command(config: Config, roots: tuple[str, ...]):
    """Import graph of every workspace folder (default: current directory)."""
    return _pipeline(_default_roots(roots), config, use_symbols=False).workspace_graph()


@main.command("architecture")
@click.argument("roots", nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Ignore a cached analysis",
)
@click.option(
    "--max-symbols",
    type=int,
    default=None,
    help="Maximum workspace symbols per query (default: 120)",
)
@click.option(
    "--no-symbols",
    is_flag=True,
    default=False,
    help="Skip the workspace symbol pass",
)
@common_options
@graph_command
def architecture_command(
    config: Config,
    roots: tuple[str, ...],
    force: bool,
    max_symbols: int | None,
    no_symbols: bool,
):
    """
    Inferred architecture: applications, services, datastores and their links.

    Detection reads package manifests (Node, Python, Go, Rust), compose
    files, Prisma and SQL schemas, and scans sources for GraphQL, HTTP and
    SQL usage. Results are heuristic and carry confidence scores.
    """
    if max_symbols is not None:
        config.max_workspace_symbols = max_symbols
    pipeline = _pipeline(_default_roots(roots), config, use_symbols=not no_symbols)
    return pipeline.architecture_graph(force=force)


@main.command("heatmap")
@click.argument("root", required=False, type=click.Path(exists=True, file_okay=False))
@click.option(
    "--window-days",
    type=int,
    default=None,
    help="History window in days, 1-365 (default: 90)",
)
@click.option(
    "--granularity",
    type=click.Choice([g.value for g in HeatmapGranularity]),
    default=None,
    help="Module grouping (default: topLevel)",
)
@common_options
@graph_command
def heatmap_command(config: Config, root: str | None, window_days: int | None, granularity: str | None):
    """Git co-change heatmap of a repository (default: current directory)."""
    pipeline = _pipeline(_default_roots((root,) if root else ()), config, use_symbols=False)
    return pipeline.git_heatmap(window_days=window_days, granularity=granularity)


@main.group()
def config():
    """Configuration management commands."""
    pass


@config.command("export")
@click.option(
    "--output",
    "-o",
    type=click.Path(),
    default=None,
    help="Output file path (default: stdout)",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["yaml", "json"], case_sensitive=False),
    default="yaml",
    help="Output format (default: yaml)",
)
def config_export(output: str | None, format: str):
    """Export current configuration to file."""
    config_obj = Config.load()

    if output:
        output_path = Path(output)
        config_obj.save(output_path, format=format)
        click.echo(f"Configuration exported to: {output_path}")
    else:
        if format == "yaml":
            content = yaml.dump(config_obj.to_dict(), default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(config_obj.to_dict(), indent=2)
        click.echo(content)


@config.command("import")
@click.argument("config_file", type=click.Path(exists=True))
@click.option(
    "--target",
    type=click.Path(),
    default=None,
    help="Where to save the configuration (default: ~/.repograph/config.yaml)",
)
def config_import(config_file: str, target: str | None):
    """Import configuration from file."""
    config_path = Path(config_file)
    config_obj = Config()
    config_obj._load_file(config_path, config_obj)

    target_path = Path(target) if target else USER_CONFIG_PATH
    config_obj.save(target_path, format="yaml")
    click.echo(f"Configuration imported and saved to: {target_path}")


if __name__ == "__main__":
    main()
