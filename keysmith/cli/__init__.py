"""CLI commands for keysmith.

The CLI is built using Click with the entry point ``keysmith``
(``keysmith.main:cli``).

Key Commands:
    rotate (keysmith.cli.rotate):
        Rotate the access key of a stored connection.

    test-connection (keysmith.cli.rotate):
        Verify a stored connection with get-caller-identity.

    credentials (keysmith.cli.credentials):
        Command group showing the credentials and build environment a
        connection provides.

Usage Examples:
    Rotate a connection's key::

        $ keysmith --config keysmith.yaml rotate PROJECT_EXT_1 --project root

    Show the build environment::

        $ keysmith credentials env PROJECT_EXT_1 --project root
"""

from keysmith.cli.credentials import credentials_group
from keysmith.cli.rotate import rotate_command, test_connection_command

__all__ = ["credentials_group", "rotate_command", "test_connection_command"]
