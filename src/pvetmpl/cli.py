"""CLI interface for pvetmpl."""

import json
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from pvetmpl import __version__
from pvetmpl.config import load_config, load_template_settings
from pvetmpl.download import download_image, remove_image
from pvetmpl.errors import DownloadError, ResolverError
from pvetmpl.families import (
    ResolvedTemplate,
    get_family,
    list_families,
    parse_release,
)
from pvetmpl.resolver import build_menu, derive_template_params, discover_releases
from pvetmpl.sources import LISTING_URLS


console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    """Send log records to stderr through rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _fail(message: str) -> None:
    err_console.print(f"[red]Error: {message}[/red]")
    sys.exit(1)


def _resolve(ctx: click.Context, family: str, release: str) -> ResolvedTemplate:
    """Validate hand-entered release text and derive its template parameters."""
    try:
        family_obj = get_family(family)
        candidate = parse_release(family_obj, release)
        return derive_template_params(family_obj, candidate, config=ctx.obj["config"])
    except ResolverError as e:
        _fail(str(e))


def _template_table(resolved: ResolvedTemplate, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green", overflow="fold")
    table.add_row("Family", resolved.family.display_name)
    table.add_row("Cloud image URL", resolved.cloud_image_url)
    table.add_row("Local filename", resolved.local_filename)
    table.add_row("Default template name", resolved.default_template_name)
    return table


@click.group()
@click.version_option(version=__version__, prog_name="pvetmpl")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option("--timeout", type=float, help="Per-request timeout in seconds")
@click.pass_context
def main(ctx: click.Context, verbose: bool, timeout: float | None):
    """pvetmpl - Find cloud image releases for Proxmox VE templates.

    pvetmpl scrapes the release listings of Ubuntu, AlmaLinux, Rocky Linux,
    Oracle Linux and CentOS Stream, and works out the cloud image URL, local
    filename and default template name for the release you pick.

    Examples:

        pvetmpl list                          # Recent releases of all families
        pvetmpl list rocky --limit 2          # Only Rocky Linux
        pvetmpl resolve ubuntu "24.04 Noble Numbat"
        pvetmpl download almalinux 9.5        # Fetch the cloud image
    """
    setup_logging(verbose)
    try:
        ctx.obj = {"config": load_config(timeout=timeout)}
    except ResolverError as e:
        _fail(str(e))


@main.command("families")
def families_cmd():
    """List supported distribution families."""
    table = Table(title="Supported Distribution Families")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("ID", style="magenta", no_wrap=True)
    table.add_column("Release listing", style="green", overflow="fold")

    for family in list_families():
        table.add_row(family.display_name, family.value, LISTING_URLS[family])

    console.print(table)


@main.command("list")
@click.argument("families", nargs=-1)
@click.option("--limit", "-n", type=click.IntRange(min=1), help="Releases per family")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def list_cmd(ctx: click.Context, families: tuple, limit: int | None, as_json: bool):
    """List recent releases, numbered for selection.

    FAMILIES limits discovery to the given families (default: all).
    """
    config = ctx.obj["config"]
    try:
        selected = [get_family(f) for f in families] or None
    except ResolverError as e:
        _fail(str(e))

    with err_console.status("Retrieving releases..."):
        results = discover_releases(selected, limit, config=config)

    if as_json:
        data = [
            {
                "family": result.family.value,
                "releases": [
                    {
                        "version": r.version,
                        "point_release": r.point_release,
                        "code_name": r.code_name,
                        "label": r.label,
                    }
                    for r in result.releases
                ],
                "error": str(result.error) if result.error else None,
            }
            for result in results
        ]
        print(json.dumps(data, indent=2))
    else:
        table = Table(title="Available Releases")
        table.add_column("#", style="dim", justify="right")
        table.add_column("Family", style="cyan", no_wrap=True)
        table.add_column("Release", style="magenta", no_wrap=True)

        for number, candidate in enumerate(build_menu(results), start=1):
            table.add_row(str(number), candidate.family.display_name, candidate.label)
        console.print(table)

        for result in results:
            if result.error:
                err_console.print(f"[yellow]Warning:[/yellow] {result.error}")
            elif result.is_empty:
                err_console.print(
                    f"[yellow]Warning:[/yellow] no releases found for {result.family}"
                )

    if all(not result.ok for result in results):
        sys.exit(1)


@main.command()
@click.argument("family")
@click.argument("release")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def resolve(ctx: click.Context, family: str, release: str, as_json: bool):
    """Show the cloud image and template name for a release.

    FAMILY is a distribution family (e.g., ubuntu, almalinux, rocky).
    RELEASE is the release as listed (e.g., "24.04 Noble Numbat", 9.5).
    """
    resolved = _resolve(ctx, family, release)
    if as_json:
        print(json.dumps(resolved.as_dict(), indent=2))
    else:
        console.print(_template_table(resolved, f"Template: {resolved.default_template_name}"))


@main.command()
@click.argument("family")
@click.argument("release")
@click.option("--name", "template_name", help="Template name (default: derived)")
@click.option("--vm-id", type=int, help="VM ID for the template")
@click.option("--memory", type=int, help="Memory size in MB")
@click.option("--cores", type=int, help="Number of CPU cores")
@click.option("--disk-size", type=int, help="Disk size in GB")
@click.option("--user", "cloud_user", help="Cloud-init user account")
@click.option("--nameserver", help="DNS nameserver")
@click.option("--searchdomain", help="DNS search domain")
@click.pass_context
def plan(ctx: click.Context, family: str, release: str, **overrides):
    """Review the settings a template would be built with.

    Values not given on the command line come from PVETMPL_* environment
    variables, then /etc/resolv.conf, then built-in defaults.
    """
    resolved = _resolve(ctx, family, release)
    try:
        settings = load_template_settings(resolved, **overrides)
    except ResolverError as e:
        _fail(str(e))

    table = _template_table(resolved, "Template Plan")
    table.add_row("VM ID", str(settings.vm_id) if settings.vm_id else "next free")
    table.add_row("Template name", settings.template_name)
    table.add_row("Memory", f"{settings.memory} MB")
    table.add_row("CPU cores", str(settings.cores))
    table.add_row("Disk size", f"{settings.disk_size} GB")
    table.add_row("Username", settings.cloud_user)
    table.add_row("DNS nameserver", settings.nameserver or "[yellow]unset[/yellow]")
    table.add_row("DNS searchdomain", settings.searchdomain or "[yellow]unset[/yellow]")
    console.print(table)


@main.command()
@click.argument("family")
@click.argument("release")
@click.option("--dest", "-d", type=click.Path(file_okay=False), help="Download directory")
@click.option("--force", "-f", is_flag=True, help="Force re-download even if exists")
@click.pass_context
def download(ctx: click.Context, family: str, release: str, dest: str | None, force: bool):
    """Download the cloud image for a release."""
    resolved = _resolve(ctx, family, release)
    console.print(f"Downloading [cyan]{resolved.cloud_image_url}[/cyan]")

    try:
        path = download_image(resolved, dest, force=force, config=ctx.obj["config"])
        console.print(f"[green]Saved {path}[/green]")
    except DownloadError as e:
        _fail(str(e))


@main.command()
@click.argument("family")
@click.argument("release")
@click.option("--dest", "-d", type=click.Path(file_okay=False), help="Download directory")
@click.pass_context
def clean(ctx: click.Context, family: str, release: str, dest: str | None):
    """Remove a downloaded cloud image."""
    resolved = _resolve(ctx, family, release)
    if remove_image(resolved, dest):
        console.print(f"[green]Removed {resolved.local_filename}[/green]")
    else:
        console.print(f"[yellow]{resolved.local_filename} is not downloaded.[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
