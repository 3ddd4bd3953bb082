import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from .cli_config import (
    build_config,
    create_sample_config,
    get_config,
    load_config,
    load_config_file,
    validate_config_values,
)
from .errors import InputError, VersionTreeError
from .rendering import TreeRenderer
from .structured_logging import configure_logging
from .tree_builder import build_version_tree, build_version_tree_from_manifest

__version__ = "1.0.0"

console = Console()
error_console = Console(stderr=True)


def _resolve_options(production: Optional[bool], depth: Optional[int]):
    """Fill unset command line options from configuration."""
    config = load_config()
    final_production = production if production is not None else config.tree.production
    final_depth = depth if depth is not None else config.tree.max_depth
    if final_depth is not None and final_depth < 0:
        raise click.BadParameter("Depth must be non-negative", param_hint="--depth")
    return final_production, final_depth


def _emit(root, output_format: str, output_file: Optional[str], quiet: bool) -> None:
    renderer = TreeRenderer(console)
    if output_format == "json":
        renderer.write_json(root, output_file)
    else:
        renderer.print_tree(root, quiet=quiet)


def _run(coroutine, quiet: bool):
    """Run a tree build, mapping library errors to exit codes."""
    try:
        return asyncio.run(coroutine)
    except KeyboardInterrupt:
        error_console.print("\n⚠️  Interrupted by user", style="yellow")
        sys.exit(130)
    except InputError as e:
        error_console.print(f"❌ {e}", style="red", markup=False, soft_wrap=True)
        sys.exit(2)
    except VersionTreeError as e:
        error_console.print(f"❌ {e}", style="red", markup=False, soft_wrap=True)
        if not quiet and e.__cause__ is not None and get_config().logging.log_level == "DEBUG":
            error_console.print(f"   caused by: {e.__cause__!r}", style="dim")
        sys.exit(1)


def _output_options(func):
    func = click.option("--quiet", "-q", is_flag=True, help="Suppress the header and summary")(func)
    func = click.option(
        "--output-file",
        "-o",
        type=click.Path(dir_okay=False, writable=True),
        help="Write JSON output to a file",
    )(func)
    func = click.option(
        "--format",
        "output_format",
        type=click.Choice(["tree", "json"]),
        default="tree",
        show_default=True,
        help="Output format",
    )(func)
    func = click.option(
        "--depth",
        type=int,
        default=None,
        help="Levels of dependencies to expand (default: unbounded)",
    )(func)
    func = click.option(
        "--production/--no-production",
        default=None,
        help="Leave out devDependencies of the root package",
    )(func)
    return func


@click.group(invoke_without_command=True)
@click.option("--version", is_flag=True, help="Show version information")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Structured log level (logs go to stderr)",
)
@click.pass_context
def cli(ctx, version, log_level):
    """
    🌳 npm-version-tree: resolve the full dependency version tree of an npm package.

    Every dependency range is resolved against the registry to the greatest
    matching published version.
    """
    if version:
        console.print(f"npm-version-tree version {__version__}", style="bold blue")
        ctx.exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        return

    configure_logging(log_level or load_config().logging.log_level)


@cli.command()
@click.argument("name")
@click.argument("range_spec", metavar="[RANGE]", required=False)
@_output_options
def tree(
    name: str,
    range_spec: Optional[str],
    production: Optional[bool],
    depth: Optional[int],
    output_format: str,
    output_file: Optional[str],
    quiet: bool,
) -> None:
    """
    Build the version tree of a registry package.

    Examples:

      npm-version-tree tree express

      npm-version-tree tree react ^17.0.0 --production --depth 2

      npm-version-tree tree lodash --format json -o lodash.json
    """
    final_production, final_depth = _resolve_options(production, depth)
    if output_file and output_format != "json":
        raise click.UsageError("Output file can only be used with JSON format")

    if not quiet and output_format == "tree":
        console.print(
            Panel(
                f"🌳 [bold blue]npm-version-tree[/bold blue] v{__version__}: "
                f"{name}#{range_spec or 'latest'}",
                border_style="blue",
            )
        )

    root = _run(
        build_version_tree(name, range_spec, production=final_production, depth=final_depth),
        quiet,
    )
    _emit(root, output_format, output_file, quiet)


@cli.command()
@click.argument("manifest_path", type=click.Path(exists=True, readable=True, dir_okay=False))
@_output_options
def manifest(
    manifest_path: str,
    production: Optional[bool],
    depth: Optional[int],
    output_format: str,
    output_file: Optional[str],
    quiet: bool,
) -> None:
    """
    Build the version tree of a local package.json.

    Examples:

      npm-version-tree manifest package.json

      npm-version-tree manifest ./app/package.json --production --format json
    """
    final_production, final_depth = _resolve_options(production, depth)
    if output_file and output_format != "json":
        raise click.UsageError("Output file can only be used with JSON format")

    if not quiet and output_format == "tree":
        console.print(
            Panel(
                f"🌳 [bold blue]npm-version-tree[/bold blue] v{__version__}: {manifest_path}",
                border_style="blue",
            )
        )

    root = _run(
        build_version_tree_from_manifest(
            manifest_path, production=final_production, depth=final_depth
        ),
        quiet,
    )
    _emit(root, output_format, output_file, quiet)


@cli.command()
def info():
    """Show resolution rules, environment variables and usage examples."""
    info_text = """
[bold blue]🔎 Resolution Rules:[/bold blue]

• [green]Ranges[/green] resolve to the greatest published version that satisfies them
• [green]Dist-tags[/green] such as latest are looked up before range matching
• [yellow]Non-semver specifiers[/yellow] (URLs, paths, git specs) are kept as-is
• [yellow]devDependencies[/yellow] are only followed for the root package

[bold blue]🌍 Environment Variables:[/bold blue]

• [cyan]NPM_VERSION_TREE_REGISTRY_URL[/cyan] - Registry base URL
• [cyan]NPM_VERSION_TREE_TOKEN[/cyan] - Bearer token (also NPM_TOKEN, NPM_AUTH_TOKEN)
• [cyan]NPM_VERSION_TREE_RETRY_ATTEMPTS[/cyan] - Fetch attempts per package
• [cyan]NPM_VERSION_TREE_RETRY_DELAYS[/cyan] - Comma-separated seconds between attempts
• [cyan]NPM_VERSION_TREE_TIMEOUT[/cyan] - Request timeout in seconds
• [cyan]NPM_VERSION_TREE_RATE_LIMIT[/cyan] - Requests per second
• [cyan]NPM_VERSION_TREE_MAX_DEPTH[/cyan] - Default depth limit
• [cyan]NPM_VERSION_TREE_PRODUCTION[/cyan] - Default production mode
• [cyan]NPM_VERSION_TREE_LOG_LEVEL[/cyan] - Structured log level

[bold blue]📄 Configuration Files:[/bold blue]

• [green].npm-version-tree.json[/green] / [green].npm-version-tree.yaml[/green] - Project-level config

[bold blue]💡 Usage Examples:[/bold blue]

  # Latest version, full tree
  npm-version-tree tree express

  # Production dependencies, two levels deep
  npm-version-tree tree express ^4.0.0 --production --depth 2

  # Local project as JSON
  npm-version-tree manifest package.json --format json -o tree.json

  # Generate sample config
  npm-version-tree config init
"""
    console.print(
        Panel(
            info_text,
            title="[bold]npm-version-tree Information[/bold]",
            border_style="blue",
        )
    )


@cli.group()
def config():
    """Configuration management commands."""
    pass


@config.command("init")
@click.option(
    "--path",
    type=click.Path(),
    default=".npm-version-tree.json",
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
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_sample_config())
    except OSError as e:
        error_console.print(f"❌ Failed to create config file: {e}", style="red")
        sys.exit(1)

    console.print(f"✅ Created configuration file at {config_path}", style="green")
    console.print("Edit this file to customize your settings", style="dim")


@config.command("show")
def config_show():
    """Show the effective configuration."""
    current_config = get_config()

    console.print(Panel("[bold blue]🔧 Configuration[/bold blue]", border_style="blue"))

    console.print("\n[bold cyan]🔁 Fetch Settings:[/bold cyan]")
    console.print(f"  Retry Attempts: {current_config.fetch.retry_attempts}")
    delays = current_config.fetch.retry_delays
    console.print(f"  Retry Delays: {', '.join(f'{d}s' for d in delays) if delays else 'immediate'}")

    console.print("\n[bold cyan]🌐 Network Settings:[/bold cyan]")
    console.print(f"  Registry: {current_config.network.registry_url}")
    console.print(f"  Timeout: {current_config.network.timeout_seconds}s")
    console.print(f"  Rate Limit: {current_config.network.rate_limit} req/s")
    console.print(f"  User Agent: {current_config.network.user_agent}")

    console.print("\n[bold cyan]🌳 Tree Defaults:[/bold cyan]")
    console.print(f"  Production: {current_config.tree.production}")
    max_depth = current_config.tree.max_depth
    console.print(f"  Max Depth: {'unbounded' if max_depth is None else max_depth}")

    console.print("\n[bold cyan]🔒 Security Settings:[/bold cyan]")
    console.print(f"  Max Manifest Size: {current_config.security.max_manifest_size_mb} MB")

    console.print("\n[bold cyan]📝 Logging Settings:[/bold cyan]")
    console.print(f"  Log Level: {current_config.logging.log_level}")


@config.command("validate")
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False))
def config_validate(config_file: str):
    """Validate a configuration file."""
    config_data = load_config_file(Path(config_file))

    if not isinstance(config_data, dict):
        error_console.print(f"❌ Could not load config from {config_file}", style="red")
        sys.exit(1)

    errors = validate_config_values(build_config(config_data))
    if errors:
        error_console.print("❌ Configuration validation failed:", style="red")
        for error in errors:
            error_console.print(f"  • {error}", style="red")
        sys.exit(1)

    console.print(f"✅ Configuration file {config_file} is valid", style="green")


if __name__ == "__main__":
    cli()
