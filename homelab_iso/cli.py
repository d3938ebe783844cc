"""Thin CLI wrapper for homelab_iso.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import asyncio
import json
import logging
from typing import Annotated, Any

import typer
from rich.console import Console

from homelab_iso import __version__
from homelab_iso.config import get_settings, print_settings_json

app = typer.Typer(
    name="homelab-iso",
    help="Homelab ISO Builder - build custom installer ISOs on ephemeral compute",
    no_args_is_help=True,
)
console = Console()


def _print_json(data: Any) -> None:
    """Print JSON without Rich markup, highlighting or line wrapping."""
    text = data if isinstance(data, str) else json.dumps(data, indent=2)
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"homelab-iso-builder version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Homelab ISO Builder - build custom installer ISOs on ephemeral compute."""


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        _print_json(print_settings_json(settings))
        return

    catalog_display = str(settings.catalog_path) if settings.catalog_path else "(built-in)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Backends:[/bold]")
    console.print(f"  Artifact store:      {settings.store_backend}")
    console.print(f"  Artifacts directory: {settings.artifacts_dir}")
    console.print(f"  Store URL:           {settings.store_url or 'N/A'}")
    console.print(f"  Provisioner URL:     {settings.provisioner_url or 'N/A'}")
    console.print(f"  Catalog:             {catalog_display}")
    console.print()
    console.print("[bold]Limits:[/bold]")
    console.print(f"  Max builds:          {settings.max_concurrent_builds}")
    console.print(f"  Builds in memory:    {settings.max_builds_in_memory}")
    console.print(f"  Max components:      {settings.max_components_per_build}")
    console.print(f"  Max variants:        {settings.max_variants_per_build}")
    console.print()
    console.print("[bold]Timing:[/bold]")
    console.print(f"  Poll interval (s):   {settings.poll_interval_seconds}")
    console.print(f"  Stall threshold (m): {settings.stalled_threshold_minutes}")
    console.print(f"  Build timeout (h):   {settings.build_timeout_hours}")
    console.print(f"  Retention (h):       {settings.build_retention_hours}")
    console.print()
    console.print("[bold]Behaviour:[/bold]")
    console.print(f"  Auto cleanup:        {settings.auto_cleanup}")
    console.print(f"  Default output name: {settings.default_output_name}")
    console.print(f"  Log level:           {settings.log_level}")


@app.command()
def catalog(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show components, variants and options that builds may use."""
    from homelab_iso.catalog import COMPONENT_CATEGORIES, get_catalog

    cat = get_catalog(get_settings())
    components = cat.visible_components()

    if json_output:
        _print_json(
            {
                "components": {
                    name: info.model_dump(exclude={"hidden"})
                    for name, info in components.items()
                },
                "variants": {
                    name: info.model_dump() for name, info in cat.variants.items()
                },
                "options": cat.options,
            }
        )
        return

    for category, title in COMPONENT_CATEGORIES.items():
        members = {n: i for n, i in components.items() if i.category == category}
        if not members:
            continue
        console.print(f"[bold]{title}:[/bold]")
        for name, info in members.items():
            marker = " [yellow](required)[/yellow]" if info.required else ""
            console.print(f"  [cyan]{name}[/cyan]{marker} - {info.description}")
        console.print()
    console.print("[bold]Model variants:[/bold]")
    for name, variant in cat.variants.items():
        console.print(f"  [cyan]{name}[/cyan] - {variant.display} ({variant.size_gb} GB)")
    console.print()
    console.print("[bold]Options:[/bold]")
    for name, description in cat.options.items():
        console.print(f"  [cyan]{name}[/cyan] - {description}")


@app.command()
def estimate(
    components: Annotated[
        list[str],
        typer.Argument(help="Components to include"),
    ],
    variants: Annotated[
        list[str] | None,
        typer.Option("--variant", "-m", help="Model variant (can be repeated)"),
    ] = None,
    options: Annotated[
        list[str] | None,
        typer.Option("--option", "-o", help="Enable an option flag (can be repeated)"),
    ] = None,
    output_name: Annotated[
        str | None,
        typer.Option("--output-name", "-n", help="Artifact base name"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Validate a build request and estimate its duration without building."""
    from homelab_iso.builds.errors import BuildValidationError
    from homelab_iso.builds.estimate import estimate_build_minutes
    from homelab_iso.builds.validation import validate_build_request
    from homelab_iso.catalog import get_catalog

    settings = get_settings()
    cat = get_catalog(settings)
    request: dict[str, Any] = {"components": components}
    if variants:
        request["variants"] = variants
    if options:
        request["options"] = {name: True for name in options}
    if output_name is not None:
        request["output_name"] = output_name

    try:
        build_config = validate_build_request(request, cat, settings)
    except BuildValidationError as e:
        if json_output:
            _print_json({"valid": False, "code": e.code, "message": str(e)})
        else:
            console.print(f"[red]Invalid request: {e}[/red]")
        raise typer.Exit(code=1) from None

    minutes = estimate_build_minutes(build_config, cat)
    name = build_config.output_name or settings.default_output_name
    if json_output:
        _print_json(
            {
                "valid": True,
                "components": list(build_config.components),
                "variants": list(build_config.variants),
                "options": build_config.options,
                "output_name": name,
                "estimated_minutes": minutes,
            }
        )
        return

    console.print("[green]Request is valid[/green]")
    console.print(f"  Components:        {', '.join(build_config.components)}")
    if build_config.variants:
        console.print(f"  Variants:          {', '.join(build_config.variants)}")
    console.print(f"  Output name:       {name}")
    console.print(f"  Estimated minutes: {minutes}")


@app.command()
def status(
    build_id: Annotated[str, typer.Argument(help="Build ID")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show a build's status from its durable status blob."""
    from homelab_iso.builds.reconciler import StatusReconciler
    from homelab_iso.builds.retry import RetryConfig, RetryExecutor
    from homelab_iso.storage import create_artifact_store

    settings = get_settings()
    store = create_artifact_store(settings)
    reconciler = StatusReconciler(
        store,
        retry=RetryExecutor(RetryConfig.from_settings(settings)),
        default_output_name=settings.default_output_name,
        artifact_suffix=settings.artifact_suffix,
        resource_prefix=settings.resource_name_prefix,
    )

    async def _lookup() -> Any:
        try:
            return await reconciler.reconcile(build_id)
        finally:
            await store.aclose()

    snapshot = asyncio.run(_lookup())
    if snapshot is None:
        if json_output:
            _print_json(None)
        else:
            console.print(f"[red]Build not found: {build_id}[/red]")
        raise typer.Exit(code=1)

    if json_output:
        _print_json(snapshot.model_dump(mode="json"))
        return

    status_color = {
        "complete": "green",
        "failed": "red",
        "running": "blue",
    }.get(snapshot.status.value, "white")
    console.print(f"[{status_color}]Build {snapshot.id}[/{status_color}]")
    console.print(f"  Status:   {snapshot.status.value}")
    console.print(f"  Progress: {snapshot.progress}%")
    console.print(f"  Stage:    {snapshot.stage}")
    if snapshot.artifact_name:
        console.print(f"  Artifact: {snapshot.artifact_name}")
    if snapshot.error:
        console.print(f"  Error:    {snapshot.error}")


@app.command()
def serve(
    host: Annotated[
        str,
        typer.Option("--host", help="Bind address"),
    ] = "127.0.0.1",
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Bind port"),
    ] = 8000,
) -> None:
    """Run the HTTP API server."""
    import uvicorn

    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run("web.app:app", host=host, port=port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    app()
