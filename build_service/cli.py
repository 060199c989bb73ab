"""Thin CLI wrapper for build_service.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.logging import RichHandler

from build_service import __version__
from build_service.config import (
    ConfigMissingError,
    get_settings,
    load_credentials,
    print_settings_json,
    read_credentials_document,
    redact_credentials,
    save_credentials,
)
from build_service.types import BuildSpec

app = typer.Typer(
    name="build-service",
    help="Build Service - remote Expo builds on GitHub Actions",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"build-service version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


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
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Build Service - remote Expo builds on GitHub Actions."""
    configure_logging("DEBUG" if verbose else get_settings().log_level)


def _spec_to_dict(spec: BuildSpec, command: str) -> dict[str, Any]:
    data = asdict(spec)
    data["variant"] = spec.variant.value
    data["output_kind"] = spec.output_kind.value
    data["command"] = command
    return data


@app.command()
def configure(
    appwrite_endpoint: Annotated[
        str | None, typer.Option("--appwrite-endpoint", help="Appwrite endpoint URL")
    ] = None,
    appwrite_project: Annotated[
        str | None, typer.Option("--appwrite-project", help="Appwrite project ID")
    ] = None,
    appwrite_key: Annotated[
        str | None, typer.Option("--appwrite-key", help="Appwrite API key")
    ] = None,
    appwrite_bucket: Annotated[
        str | None,
        typer.Option("--appwrite-bucket", help="Appwrite storage bucket ID"),
    ] = None,
    github_token: Annotated[
        str | None,
        typer.Option("--github-token", help="GitHub personal access token"),
    ] = None,
    github_repo: Annotated[
        str | None,
        typer.Option("--github-repo", help="GitHub repository (owner/repo)"),
    ] = None,
) -> None:
    """Configure the build service credentials."""
    updates = {
        "appwriteEndpoint": appwrite_endpoint,
        "appwriteProject": appwrite_project,
        "appwriteKey": appwrite_key,
        "appwriteBucket": appwrite_bucket,
        "githubToken": github_token,
        "githubRepo": github_repo,
    }
    settings = get_settings()
    try:
        path = save_credentials(
            {k: v for k, v in updates.items() if v}, settings.config_path
        )
    except ConfigMissingError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    console.print(f"[green]Configuration saved to {path}[/green]")


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration (secrets redacted)."""
    settings = get_settings()
    try:
        document = read_credentials_document(settings.config_path)
    except ConfigMissingError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None
    credentials = redact_credentials(document)

    if json_output:
        output = {
            "settings": json.loads(print_settings_json(settings)),
            "credentials": credentials,
        }
        typer.echo(json.dumps(output, indent=2))
        return

    tmp_dir_display = str(settings.tmp_dir) if settings.tmp_dir else "(system default)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Config file:         {settings.config_path}")
    console.print(f"  Temp directory:      {tmp_dir_display}")
    console.print()
    console.print("[bold]Build:[/bold]")
    console.print(f"  Default profile:     {settings.default_profile}")
    console.print(f"  Platform:            {settings.platform}")
    console.print(f"  Event type:          {settings.event_type}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Credentials:[/bold]")
    if not credentials:
        console.print("  [yellow](not configured)[/yellow]")
    for key, value in credentials.items():
        console.print(f"  {key + ':':<21}{value}")


@app.command()
def build(
    project: Annotated[
        Path, typer.Argument(help="Path to your Expo project")
    ] = Path("."),
    profile: Annotated[
        str | None,
        typer.Option("--profile", "-p", "--eas-profile", help="Build profile name"),
    ] = None,
    platform: Annotated[
        str | None,
        typer.Option("--platform", help="Target platform (default from settings)"),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", "-e", help="Extra ignore pattern (can be repeated)"),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run", "-n", help="Resolve and package only; do not upload or trigger"
        ),
    ] = False,
    wait: Annotated[
        bool,
        typer.Option("--wait", help="Wait for the build to complete"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build your Expo project remotely."""
    import httpx

    from build_service.builds.pipeline import DispatchPipeline, PipelineError
    from build_service.dispatch import DispatchError
    from build_service.packaging.archive import remove_archive
    from build_service.storage import StorageError

    settings = get_settings()
    if platform:
        settings = settings.model_copy(update={"platform": platform})
    profile_name = profile or settings.default_profile

    if dry_run:
        pipeline = DispatchPipeline(settings=settings)
        try:
            prepared = pipeline.prepare(project, profile_name, exclude)
        except PipelineError as e:
            err_console.print(f"[red]Build failed: {e}[/red]")
            raise typer.Exit(code=1) from None
        remove_archive(prepared.archive)

        spec = prepared.resolution.spec
        if json_output:
            output = {
                "dry_run": True,
                "profile": profile_name,
                "spec": _spec_to_dict(spec, prepared.command),
                "archive_size": prepared.archive.size_bytes,
                "files": list(prepared.archive.entries),
                "warnings": prepared.resolution.warnings,
            }
            typer.echo(json.dumps(output, indent=2))
        else:
            console.print("[bold][DRY RUN] Build Information:[/bold]")
            console.print(f"  Profile:   {profile_name}")
            console.print(f"  Variant:   {spec.variant.value}")
            console.print(f"  Output:    {spec.output_kind.value.upper()}")
            console.print(f"  Gradle:    {prepared.command}")
            console.print(f"  Files:     {len(prepared.archive.entries)}")
            console.print(
                f"  Size:      {prepared.archive.size_bytes / 1024 / 1024:.2f} MB"
            )
            for warning in prepared.resolution.warnings:
                console.print(f"  [yellow]Warning: {warning}[/yellow]")
        return

    try:
        credentials = load_credentials(settings.config_path)
    except ConfigMissingError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    if not json_output:
        console.print(f"[bold]Project:[/bold] {project}")
        console.print(f"[bold]Profile:[/bold] {profile_name}")

    with httpx.Client(timeout=settings.request_timeout) as client:
        pipeline = DispatchPipeline.from_credentials(credentials, client, settings)
        try:
            result = pipeline.run(project, profile_name, exclude)
        except PipelineError as e:
            err_console.print(f"[red]Build failed: {e}[/red]")
            cause = e.__cause__
            if isinstance(cause, (StorageError, DispatchError)) and cause.detail:
                err_console.print(f"Response: {cause.detail}", markup=False)
            raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "build_id": result.build_id,
            "artifact_id": result.artifact_id,
            "profile": profile_name,
            "source_url": result.source_url,
            "spec": _spec_to_dict(result.spec, result.command),
            "archive_size": result.archive_size,
            "monitor_url": result.monitor_url,
            "warnings": result.warnings,
        }
        typer.echo(json.dumps(output, indent=2))
    else:
        console.print()
        console.print("[green]Build started![/green]")
        console.print("[bold]Build Information:[/bold]")
        console.print(f"  Build ID:  {result.build_id}")
        console.print(f"  File ID:   {result.artifact_id}")
        console.print(f"  Profile:   {profile_name}")
        console.print(f"  Variant:   {result.spec.variant.value}")
        console.print(f"  Output:    {result.spec.output_kind.value.upper()}")
        console.print(f"  Gradle:    {result.command}")
        for warning in result.warnings:
            console.print(f"  [yellow]Warning: {warning}[/yellow]")
        console.print()
        console.print(f"Monitor at: {result.monitor_url}")

    if wait and not json_output:
        console.print()
        console.print(
            "[yellow]Waiting requires webhook setup; "
            "check GitHub Actions manually for now[/yellow]"
        )


@app.command()
def status(
    build_id: Annotated[
        str | None, typer.Argument(help="Build ID to check")
    ] = None,
) -> None:
    """Check build status."""
    from build_service.dispatch import status_url

    settings = get_settings()
    try:
        document = read_credentials_document(settings.config_path)
    except ConfigMissingError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    repo = document.get("githubRepo")
    if not repo:
        err_console.print("[red]Missing configuration: githubRepo[/red]")
        raise typer.Exit(code=1)

    console.print(f"Checking status for build: {build_id or 'latest'}")
    console.print(f"View at: {status_url(repo, build_id, settings.github_web_url)}")


profiles_app = typer.Typer(help="Inspect build profiles in eas.json")
app.add_typer(profiles_app, name="profiles")


@profiles_app.command("list")
def profiles_list(
    project: Annotated[
        Path, typer.Argument(help="Path to your Expo project")
    ] = Path("."),
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List profiles defined in the project's eas.json."""
    from build_service.profiles.io import ProfileConfigError
    from build_service.profiles.resolver import list_profile_names

    try:
        names = list_profile_names(project)
    except ProfileConfigError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        typer.echo(json.dumps(names))
        return
    if not names:
        console.print("[yellow]No profiles found[/yellow]")
        return
    console.print(f"[bold]Found {len(names)} profile(s):[/bold]")
    for name in names:
        console.print(f"  [green]{name}[/green]")


@profiles_app.command("show")
def profiles_show(
    name: Annotated[str, typer.Argument(help="Profile name to resolve")],
    project: Annotated[
        Path, typer.Argument(help="Path to your Expo project")
    ] = Path("."),
    platform: Annotated[
        str | None,
        typer.Option("--platform", help="Target platform (default from settings)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the build spec a profile resolves to."""
    import yaml

    from build_service.builds.command import derive_command
    from build_service.profiles.resolver import resolve_profile

    settings = get_settings()
    resolution = resolve_profile(project, name, platform or settings.platform)
    output = {
        "profile": name,
        "found": resolution.found,
        "spec": _spec_to_dict(resolution.spec, derive_command(resolution.spec)),
        "warnings": resolution.warnings,
    }

    if json_output:
        typer.echo(json.dumps(output, indent=2))
    else:
        typer.echo(
            yaml.safe_dump(
                output, default_flow_style=False, allow_unicode=True, sort_keys=False
            ),
            nl=False,
        )


@app.command("ignore")
def ignore_show(
    project: Annotated[
        Path, typer.Argument(help="Path to your Expo project")
    ] = Path("."),
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", "-e", help="Extra ignore pattern (can be repeated)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the effective ignore patterns for a project."""
    from build_service.packaging.ignore import resolve_ignore_set

    try:
        ignore_set = resolve_ignore_set(project, exclude)
    except (OSError, UnicodeDecodeError) as e:
        err_console.print(f"[red]Failed to read ignore file: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "source": ignore_set.source,
            "patterns": list(ignore_set.patterns),
            "extra_count": ignore_set.extra_count,
        }
        typer.echo(json.dumps(output, indent=2))
        return

    console.print(f"[bold]Source:[/bold] {ignore_set.source}")
    for pattern in ignore_set.patterns:
        console.print(f"  {pattern}", markup=False)
