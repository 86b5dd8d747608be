"""CLI commands acting on a stored connection at the provider.

Commands:
    - rotate: Replace the connection's access key with a new one
    - test-connection: Check the connection's credentials with get-caller-identity
"""

import sys

import click
import structlog

from keysmith.cli.services import (
    create_holder_factory,
    create_store,
    create_verifier_factory,
    load_connection,
)
from keysmith.connection_tester import ConnectionTester
from keysmith.exceptions import KeyRotationError, KeysmithError
from keysmith.providers.aws import IamKeyManager
from keysmith.rotation.rotator import KeyRotator

log = structlog.get_logger(__name__)


@click.command(name="rotate")
@click.argument("connection_id")
@click.option("--project", "project_id", required=True, help="Project owning the connection")
@click.pass_context
def rotate_command(ctx: click.Context, connection_id: str, project_id: str) -> None:
    """Rotate the access key of a connection.

    Creates a new key, verifies it, stores it in the connection and deletes
    the old key. Blocks for up to two rotation timeouts.

    Examples:

        keysmith rotate PROJECT_EXT_1 --project root
    """
    settings = ctx.obj["settings"]
    try:
        with create_store(settings) as store:
            rotator = KeyRotator(store, IamKeyManager(), create_verifier_factory(settings), settings=settings)
            rotator.rotate_connection_keys(connection_id, project_id)
    except KeyRotationError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        click.echo(f"Failed step: {e.step.value if e.step else 'unknown'}", err=True)
        click.echo(e.state_summary, err=True)
        log.debug("rotate_error", exc_info=True)
        sys.exit(1)
    except KeysmithError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        log.debug("rotate_error", exc_info=True)
        sys.exit(1)

    click.echo(click.style(f"Rotated access key of connection {connection_id}", fg="green"))


@click.command(name="test-connection")
@click.argument("connection_id")
@click.option("--project", "project_id", required=True, help="Project owning the connection")
@click.pass_context
def test_connection_command(ctx: click.Context, connection_id: str, project_id: str) -> None:
    """Check that a connection's credentials are accepted.

    Examples:

        keysmith test-connection PROJECT_EXT_1 --project root
    """
    settings = ctx.obj["settings"]
    try:
        with create_store(settings) as store:
            record = load_connection(store, project_id, connection_id)
    except KeysmithError as e:
        click.echo(click.style(f"Error: {e.message}", fg="red"), err=True)
        sys.exit(1)

    tester = ConnectionTester(create_holder_factory(settings), create_verifier_factory(settings))
    result = tester.test_connection(record.parameters)

    if not result.ok:
        click.echo(click.style(f"Error: {result.error}", fg="red"), err=True)
        for prop in result.invalid_properties:
            click.echo(f"  {prop.name}: {prop.reason}", err=True)
        sys.exit(1)

    click.echo(click.style("Connection is valid", fg="green"))
    click.echo(f"  User ID: {result.identity.user_id}")
    if result.identity.account:
        click.echo(f"  Account: {result.identity.account}")
    if result.identity.arn:
        click.echo(f"  ARN: {result.identity.arn}")
