"""
RemoteSync CLI: run a sync cycle and inspect the trust store by hand.

The main Click group is defined here; command groups live in their own
modules and are attached via register functions.

Entry point: remotesync.cli:main
"""

from __future__ import annotations

import click

from .. import __version__
from ._common import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="remotesync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def main(verbose):
    """RemoteSync: signed mod synchronization.

    Downloads the published mod list and admits only the mods whose
    detached signatures verify against your key ring.
    """
    setup_logging(verbose)


from .keys import register_keys_commands
from .sync_cmd import register_sync_commands

register_sync_commands(main)
register_keys_commands(main)
