#!/usr/bin/env python3
"""
Stageline CLI - Main entry point.

This module provides:
- `run`: execute a pipeline file
- `validate`: check a pipeline file without running it
- `init`: write the standard build/push/deploy pipeline
- `secret`: manage registry credentials in the keyring
"""
import json
import sys
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.markup import escape

from stageline import __version__
from stageline.config.constants import (
    DEFAULT_ARCHIVE_PREFIX,
    DEFAULT_BRANCH,
    DEFAULT_CONTAINER_NAME,
    DEFAULT_CONTAINER_PORT,
    DEFAULT_CREDENTIALS_ID,
    DEFAULT_HOST_PORT,
    DEFAULT_IMAGE,
    DEFAULT_TAG,
)
from stageline.core.exceptions import ConfigurationError, PipelineDefinitionError

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="stageline")
@click.option('--config', 'config_file', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Config file (default: ~/.stageline/config.yaml)')
@click.option('--verbose', '-v', is_flag=True, help='Log to stderr as well as the log file')
@click.pass_context
def cli(ctx, config_file, verbose):
    """
    Stageline - declarative build/push/deploy pipelines.
    """
    from stageline.config import load_config, set_config

    ctx.ensure_object(dict)
    try:
        config = load_config(config_file)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error: {escape(str(e))}[/red]")
        sys.exit(2)
    set_config(config)
    ctx.obj['config'] = config
    ctx.obj['verbose'] = verbose


def _setup_logging(ctx, run_id=None):
    from stageline.utils.logger import setup_logger

    setup_logger(verbose=ctx.obj['verbose'], run_id=run_id, config=ctx.obj['config'].logging)


@cli.command()
@click.argument('pipeline_file', type=click.Path(dir_okay=False, path_type=Path))
@click.option('--build-id', '-b', default=None, help='Build identifier (default: $BUILD_NUMBER or timestamp)')
@click.option('--workspace', '-w', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Directory steps run in')
@click.option('--json', 'as_json', is_flag=True, help='Print the run result as JSON')
@click.option('--report', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Also write the run result as JSON to this file')
@click.option('--quiet', '-q', is_flag=True, help='Hide step output')
@click.pass_context
def run(ctx, pipeline_file, build_id, workspace, as_json, report, quiet):
    """
    Run a pipeline file.

    Example: stageline run pipeline.yaml --build-id 42
    """
    from stageline.pipeline import PipelineExecutor, load_pipeline, resolve_build_id
    from stageline.secrets import get_secret_store
    from stageline.utils.display import get_display_manager

    config = ctx.obj['config']
    if workspace:
        config.general.workspace = workspace
    build_id = resolve_build_id(build_id or config.general.build_id)
    _setup_logging(ctx, run_id=build_id)

    try:
        pipeline = load_pipeline(pipeline_file)
    except (FileNotFoundError, PipelineDefinitionError) as e:
        _fail(str(e), as_json)

    display = None
    if not as_json:
        display = get_display_manager()
        display.show_output = not quiet

    executor = PipelineExecutor.from_config(config, display=display, secret_store=get_secret_store())
    result = executor.run(pipeline, build_id=build_id)

    if report:
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(json.dumps(result.to_dict(), indent=2))
        logger.info(f"Run report written to {report}")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))

    sys.exit(0 if result.success else 1)


@cli.command()
@click.argument('pipeline_file', type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def validate(ctx, pipeline_file):
    """Validate a pipeline file without running it."""
    from stageline.pipeline import load_pipeline

    try:
        pipeline = load_pipeline(pipeline_file)
    except (FileNotFoundError, PipelineDefinitionError) as e:
        _fail(str(e), as_json=False)

    console.print(f"[green]✅ {pipeline_file} is valid[/green] ([cyan]{pipeline.name}[/cyan])")
    for index, stage in enumerate(pipeline.stages, start=1):
        console.print(f"  {index}. {stage.name} [dim]({len(stage.steps)} step(s))[/dim]")
    post_count = len(pipeline.post.always) + len(pipeline.post.success) + len(pipeline.post.failure)
    if post_count:
        console.print(f"  post: [dim]{post_count} step(s)[/dim]")


@cli.command()
@click.option('--name', default=DEFAULT_CONTAINER_NAME, show_default=True, help='Pipeline name')
@click.option('--image', default=DEFAULT_IMAGE, show_default=True, help='Image repository')
@click.option('--tag', default=DEFAULT_TAG, show_default=True, help='Image tag')
@click.option('--container', default=DEFAULT_CONTAINER_NAME, show_default=True, help='Container name')
@click.option('--host-port', default=DEFAULT_HOST_PORT, show_default=True, type=int)
@click.option('--container-port', default=DEFAULT_CONTAINER_PORT, show_default=True, type=int)
@click.option('--repo-url', default=None, help='Git repository to clone in the Checkout stage')
@click.option('--branch', default=DEFAULT_BRANCH, show_default=True)
@click.option('--credentials-id', default=DEFAULT_CREDENTIALS_ID, show_default=True,
              help='Registry credential id')
@click.option('--bucket', default=None, help='S3 bucket; adds an Archive stage')
@click.option('--prefix', default=DEFAULT_ARCHIVE_PREFIX, show_default=True, help='S3 key prefix')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Write to this file instead of stdout')
@click.option('--force', is_flag=True, help='Overwrite an existing output file')
def init(name, image, tag, container, host_port, container_port, repo_url, branch,
         credentials_id, bucket, prefix, output, force):
    """Write the standard build/push/deploy pipeline as YAML."""
    from stageline.pipeline import build_docker_pipeline, dump_pipeline

    pipeline = build_docker_pipeline(
        name=name, image=image, tag=tag, container_name=container,
        host_port=host_port, container_port=container_port,
        repo_url=repo_url, branch=branch, credentials_id=credentials_id,
        bucket=bucket, prefix=prefix,
    )
    content = dump_pipeline(pipeline)

    if output is None:
        click.echo(content, nl=False)
        return
    if output.exists() and not force:
        console.print(f"[red]{output} already exists (use --force to overwrite)[/red]")
        sys.exit(1)
    output.write_text(content)
    console.print(f"[green]✅ Pipeline written to {output}[/green]")


@cli.group()
def secret():
    """Manage pipeline credentials."""


@secret.command('set')
@click.argument('credential_id')
@click.option('--username', '-u', prompt=True, help='Username')
@click.option('--password', '-p', prompt=True, hide_input=True, confirmation_prompt=True,
              help='Password or token (prompted when omitted)')
def secret_set(credential_id, username, password):
    """Store a username/password credential."""
    from stageline.secrets import get_secret_store

    store = get_secret_store()
    store.set_credential(credential_id, username, password)
    if store.is_secure:
        console.print(f"[green]🔒 Credential '{credential_id}' stored in keyring[/green]")
    else:
        console.print(
            f"[yellow]⚠️  Keyring unavailable: '{credential_id}' kept in memory only. "
            "Use STAGELINE_CRED_* environment variables instead.[/yellow]"
        )


@secret.command('remove')
@click.argument('credential_id')
def secret_remove(credential_id):
    """Remove a stored credential."""
    from stageline.secrets import get_secret_store

    if get_secret_store().remove_credential(credential_id):
        console.print(f"[green]Credential '{credential_id}' removed[/green]")
    else:
        console.print(f"[yellow]Credential '{credential_id}' not found[/yellow]")
        sys.exit(1)


@secret.command('check')
@click.argument('credential_id')
def secret_check(credential_id):
    """Check that a credential id resolves (keyring or environment)."""
    from stageline.secrets import credential_env_names, get_secret_store

    if get_secret_store().has_credential(credential_id):
        console.print(f"[green]✅ Credential '{credential_id}' resolves[/green]")
        return
    user_var, pass_var = credential_env_names(credential_id)
    console.print(
        f"[red]❌ Credential '{credential_id}' not found[/red] "
        f"[dim](keyring or {user_var}/{pass_var})[/dim]"
    )
    sys.exit(1)


def _fail(message: str, as_json: bool) -> None:
    if as_json:
        click.echo(json.dumps({"success": False, "error": message}))
    else:
        console.print(f"[red]Error: {escape(message)}[/red]")
    sys.exit(1)


def main():
    """Console script entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
