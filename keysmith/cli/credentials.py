"""CLI commands for inspecting a connection's credentials.

This module provides the ``keysmith credentials`` command group, which builds
the same holder a build job would receive and shows what it exposes.

Commands:
    - show: Describe the holder and its current (masked) credentials
    - env: Print the environment variables for a build job

Example:
    Export session credentials into the current shell::

        $ eval "$(keysmith credentials env PROJECT_EXT_1 --project root --show-secrets)"
"""

import sys

import click

from keysmith.cli.services import (
    connection_region,
    create_holder_factory,
    create_store,
    load_connection,
)
from keysmith.exceptions import KeysmithError
from keysmith.exposure import (
    credentials_to_env_vars,
    encode_credentials_profile,
    secure_parameter_names,
)


@click.group(name="credentials")
def credentials_group():
    """Inspect the credentials a connection provides.

    Examples:

        keysmith credentials show PROJECT_EXT_1 --project root

        keysmith credentials env PROJECT_EXT_1 --project root
    """
    pass


@credentials_group.command(name="show")
@click.argument("connection_id")
@click.option("--project", "project_id", required=True, help="Project owning the connection")
@click.pass_context
def show_credentials(ctx: click.Context, connection_id: str, project_id: str):
    """Describe a connection's credentials without revealing secrets."""
    settings = ctx.obj["settings"]
    factory = create_holder_factory(settings)
    try:
        with create_store(settings) as store:
            record = load_connection(store, project_id, connection_id)
        description = factory.describe(record.parameters)
        holder = factory.request_credentials(record.parameters)
    except KeysmithError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)

    try:
        credentials = holder.get_credentials()
        expires_at = holder.get_session_expiration_date()
    finally:
        holder.close()

    click.echo(f"Connection: {connection_id} (project: {project_id})")
    click.echo(f"Type: {description}")
    click.echo(f"Access key: {credentials.masked_key_id}")
    click.echo(f"Temporary: {'yes' if credentials.is_temporary else 'no'}")
    click.echo(f"Expires: {expires_at.isoformat() if expires_at else 'never'}")


@credentials_group.command(name="env")
@click.argument("connection_id")
@click.option("--project", "project_id", required=True, help="Project owning the connection")
@click.option("--show-secrets", is_flag=True, help="Print secret values (default: masked)")
@click.option("--profile", is_flag=True, help="Print a base64-encoded credentials profile instead")
@click.pass_context
def env_credentials(ctx: click.Context, connection_id: str, project_id: str, show_secrets: bool, profile: bool):
    """Print the environment a build job would receive."""
    settings = ctx.obj["settings"]
    factory = create_holder_factory(settings)
    try:
        with create_store(settings) as store:
            record = load_connection(store, project_id, connection_id)
        holder = factory.request_credentials(record.parameters)
    except KeysmithError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)

    region = connection_region(record)
    try:
        if profile:
            click.echo(encode_credentials_profile(holder, region=region))
            return
        env = credentials_to_env_vars(holder, region=region)
    finally:
        holder.close()

    secure = set(secure_parameter_names(env))
    for name, value in env.items():
        if name in secure and not show_secrets:
            value = "*" * 8
        click.echo(f"export {name}={value}")
