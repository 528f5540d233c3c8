"""CLI for template-registry - register templates and publish their versions."""

import hashlib
import logging
import sys
from pathlib import Path
from typing import Callable, Optional

import click
from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .errors import RegistryError
from .registry import TemplateRegistry


console = Console()
error_console = Console(stderr=True)


def get_registry_file() -> Path:
    """Get the default registry file path."""
    return Path.cwd() / "registry.yaml"


def _fail(message: str) -> None:
    error_console.print(f"[red]Error:[/red] {escape(message)}")
    sys.exit(1)


def _load(ctx: click.Context) -> TemplateRegistry:
    try:
        return TemplateRegistry.load(ctx.obj["registry_file"])
    except (OSError, ValueError) as e:
        error_console.print(f"[red]Error loading registry:[/red] {escape(str(e))}")
        sys.exit(1)


def _save(registry: TemplateRegistry, path: Path) -> None:
    try:
        registry.save(path)
    except OSError as e:
        error_console.print(f"[red]Error saving registry:[/red] {escape(str(e))}")
        sys.exit(1)


def _mutate(
    ctx: click.Context, action: Callable[[TemplateRegistry, str, int], object]
) -> object:
    """Load the registry, apply one operation as the configured caller, and save."""
    caller = ctx.obj["caller"]
    if not caller:
        _fail("No caller identity. Use --caller or set TEMPLATE_REGISTRY_CALLER.")

    registry = _load(ctx)
    height = ctx.obj["height"]
    if height is None:
        height = registry.height + 1

    try:
        result = action(registry, caller, height)
    except RegistryError as e:
        error_console.print(f"[red]Error ({e.kind.name}):[/red] {escape(e.message)}")
        sys.exit(1)

    _save(registry, ctx.obj["registry_file"])
    return result


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--registry-file",
    "-f",
    type=click.Path(path_type=Path, dir_okay=False),
    envvar="TEMPLATE_REGISTRY_FILE",
    default=None,
    help="Registry state file (default: ./registry.yaml)",
)
@click.option(
    "--caller",
    "-c",
    envvar="TEMPLATE_REGISTRY_CALLER",
    default=None,
    help="Identity performing the operation",
)
@click.option(
    "--height",
    type=click.IntRange(min=0),
    default=None,
    help="Logical time of the operation (default: last height + 1)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(
    ctx: click.Context,
    registry_file: Optional[Path],
    caller: Optional[str],
    height: Optional[int],
    verbose: bool,
) -> None:
    """Template Registry - Ownable templates with an append-only version history."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["registry_file"] = registry_file or get_registry_file()
    ctx.obj["caller"] = caller
    ctx.obj["height"] = height


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create an empty registry file."""
    path = ctx.obj["registry_file"]
    if path.exists():
        console.print(f"[yellow]Registry already exists at:[/yellow] {path}")
        return

    _save(TemplateRegistry(), path)
    console.print(f"[green]Initialized registry at:[/green] {path}")


@cli.command()
@click.argument("title")
@click.option("--description", "-d", required=True, help="Template description")
@click.option("--tag", "-t", "tags", multiple=True, help="Tag (repeatable, max 5)")
@click.option("--clarity", "-C", "clarity_versions", multiple=True, help="Supported Clarity version (repeatable)")
@click.option("--platform", "-p", "platforms", multiple=True, help="Supported platform (repeatable)")
@click.option("--docs-url", default=None, help="Documentation URL")
@click.option("--repo-url", default=None, help="Repository URL")
@click.pass_context
def register(
    ctx: click.Context,
    title: str,
    description: str,
    tags: tuple,
    clarity_versions: tuple,
    platforms: tuple,
    docs_url: Optional[str],
    repo_url: Optional[str],
) -> None:
    """Register a new template owned by the caller."""
    template_id = _mutate(
        ctx,
        lambda registry, caller, height: registry.register_template(
            title,
            description,
            tags,
            clarity_versions,
            platforms,
            docs_url,
            repo_url,
            caller=caller,
            height=height,
        ),
    )
    console.print(f"[green]Registered template[/green] {template_id}: {escape(title)}")


@cli.command()
@click.argument("template_id", type=int)
@click.argument("title")
@click.option("--description", "-d", required=True, help="Template description")
@click.option("--tag", "-t", "tags", multiple=True, help="Tag (repeatable, max 5)")
@click.option("--docs-url", default=None, help="Documentation URL")
@click.option("--repo-url", default=None, help="Repository URL")
@click.pass_context
def update(
    ctx: click.Context,
    template_id: int,
    title: str,
    description: str,
    tags: tuple,
    docs_url: Optional[str],
    repo_url: Optional[str],
) -> None:
    """Replace the metadata of a template."""
    _mutate(
        ctx,
        lambda registry, caller, height: registry.update_metadata(
            template_id,
            title,
            description,
            tags,
            docs_url,
            repo_url,
            caller=caller,
            height=height,
        ),
    )
    console.print(f"[green]Updated template[/green] {template_id}")


@cli.command()
@click.argument("template_id", type=int)
@click.option("--clarity", "-C", "clarity_versions", multiple=True, help="Supported Clarity version (repeatable)")
@click.option("--platform", "-p", "platforms", multiple=True, help="Supported platform (repeatable)")
@click.pass_context
def compat(
    ctx: click.Context, template_id: int, clarity_versions: tuple, platforms: tuple
) -> None:
    """Replace the compatibility record of a template."""
    _mutate(
        ctx,
        lambda registry, caller, height: registry.update_compatibility(
            template_id, clarity_versions, platforms, caller=caller, height=height
        ),
    )
    console.print(f"[green]Updated compatibility of template[/green] {template_id}")


@cli.command()
@click.argument("template_id", type=int)
@click.argument("version")
@click.option("--hash", "content_hash", default=None, help="Content hash as 64 hex characters")
@click.option(
    "--content",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="File whose SHA-256 becomes the content hash",
)
@click.option("--notes", "-n", default="", help="Release notes")
@click.pass_context
def publish(
    ctx: click.Context,
    template_id: int,
    version: str,
    content_hash: Optional[str],
    content: Optional[Path],
    notes: str,
) -> None:
    """Publish a new version of a template."""
    if (content_hash is None) == (content is None):
        _fail("Give exactly one of --hash or --content.")

    digest = content_hash if content is None else hashlib.sha256(content.read_bytes()).digest()

    record = _mutate(
        ctx,
        lambda registry, caller, height: registry.publish_version(
            template_id, version, digest, notes, caller=caller, height=height
        ),
    )
    console.print(
        f"[green]Published[/green] {escape(version)} of template {template_id}"
    )
    console.print(f"[dim]sha256 {record.content_hash_hex}[/dim]")


@cli.command()
@click.argument("template_id", type=int)
@click.argument("version")
@click.pass_context
def deprecate(ctx: click.Context, template_id: int, version: str) -> None:
    """Mark a published version as deprecated."""
    _mutate(
        ctx,
        lambda registry, caller, height: registry.deprecate_version(
            template_id, version, caller=caller, height=height
        ),
    )
    console.print(f"[yellow]Deprecated[/yellow] {escape(version)} of template {template_id}")


@cli.command()
@click.argument("template_id", type=int)
@click.argument("new_owner")
@click.pass_context
def transfer(ctx: click.Context, template_id: int, new_owner: str) -> None:
    """Transfer ownership of a template to another identity."""
    _mutate(
        ctx,
        lambda registry, caller, height: registry.transfer_ownership(
            template_id, new_owner, caller=caller, height=height
        ),
    )
    console.print(f"[green]Template {template_id} now owned by[/green] {escape(new_owner)}")


@cli.command()
@click.argument("template_id", type=int)
@click.pass_context
def deactivate(ctx: click.Context, template_id: int) -> None:
    """Mark a template inactive."""
    _mutate(
        ctx,
        lambda registry, caller, height: registry.deactivate_template(
            template_id, caller=caller, height=height
        ),
    )
    console.print(f"[yellow]Template {template_id} is inactive[/yellow]")


@cli.command()
@click.argument("template_id", type=int)
@click.pass_context
def reactivate(ctx: click.Context, template_id: int) -> None:
    """Mark a template active again."""
    _mutate(
        ctx,
        lambda registry, caller, height: registry.reactivate_template(
            template_id, caller=caller, height=height
        ),
    )
    console.print(f"[green]Template {template_id} is active[/green]")


@cli.command("list")
@click.option("--owner", "-o", default=None, help="Only templates owned by this identity")
@click.pass_context
def list_templates(ctx: click.Context, owner: Optional[str]) -> None:
    """List registered templates."""
    registry = _load(ctx)
    templates = registry.list_templates(owner=owner)

    if not templates:
        console.print("[yellow]No templates found.[/yellow]")
        console.print(f"[dim]Registry: {ctx.obj['registry_file']}[/dim]")
        return

    table = Table(title="Templates", box=box.ROUNDED)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("Owner", style="magenta")
    table.add_column("Versions")
    table.add_column("Active")

    for template in templates:
        versions = registry.get_version_list(template.id) or []
        table.add_row(
            str(template.id),
            escape(template.title),
            escape(template.owner),
            str(len(versions)),
            "yes" if template.is_active else "no",
        )

    console.print(table)


@cli.command()
@click.argument("template_id", type=int)
@click.pass_context
def show(ctx: click.Context, template_id: int) -> None:
    """Show details of a template."""
    registry = _load(ctx)
    template = registry.get_template(template_id)

    if template is None:
        _fail(f"Template {template_id} not found.")

    status = "active" if template.is_active else "inactive"
    console.print(
        Panel(
            f"[bold cyan]{escape(template.title)}[/bold cyan] #{template.id} ({status})\n"
            f"{escape(template.description)}",
            subtitle=f"owner {escape(template.owner)}",
        )
    )

    details = Table(box=box.SIMPLE, show_header=False)
    details.add_column("Field", style="dim")
    details.add_column("Value")
    details.add_row("Tags", escape(", ".join(template.tags)) or "-")
    details.add_row("Created", str(template.created_at))
    details.add_row("Last updated", str(template.last_updated))
    details.add_row("Documentation", escape(template.documentation_url or "-"))
    details.add_row("Repository", escape(template.repository_url or "-"))

    compatibility = registry.get_compatibility(template_id)
    if compatibility is not None:
        details.add_row("Clarity", escape(", ".join(compatibility.clarity_versions)))
        details.add_row("Platforms", escape(", ".join(compatibility.platforms)))

    console.print(details)


@cli.command()
@click.argument("template_id", type=int)
@click.pass_context
def versions(ctx: click.Context, template_id: int) -> None:
    """List the versions of a template in publication order."""
    registry = _load(ctx)
    labels = registry.get_version_list(template_id)

    if labels is None:
        _fail(f"Template {template_id} not found.")
    if not labels:
        console.print(f"[yellow]Template {template_id} has no versions.[/yellow]")
        return

    table = Table(title=f"Versions of template {template_id}", box=box.ROUNDED)
    table.add_column("Version", style="cyan")
    table.add_column("Published", justify="right")
    table.add_column("Content hash", style="dim")
    table.add_column("Notes")

    for label in labels:
        record = registry.get_version(template_id, label)
        name = escape(label)
        if record.is_deprecated:
            name += " [yellow](deprecated)[/yellow]"
        table.add_row(
            name,
            str(record.published_at),
            record.content_hash_hex[:16],
            escape(record.release_notes),
        )

    console.print(table)


@cli.command()
@click.argument("template_id", type=int)
@click.argument("identity")
@click.pass_context
def owner(ctx: click.Context, template_id: int, identity: str) -> None:
    """Check whether IDENTITY owns a template."""
    registry = _load(ctx)
    if registry.is_owner(template_id, identity):
        console.print(f"[green]yes[/green]: {escape(identity)} owns template {template_id}")
    else:
        console.print(f"[red]no[/red]: {escape(identity)} does not own template {template_id}")


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
