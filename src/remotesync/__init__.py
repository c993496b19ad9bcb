"""
RemoteSync: signed artifact synchronization.

Keeps a local mod cache in step with a remotely published manifest and
admits only the artifacts whose detached OpenPGP signatures validate
against a locally curated key ring.
"""

__version__ = "0.1.0"

CONFIG_BASENAME = "remote_sync"
SIGNATURE_SUFFIX = ".sig"
