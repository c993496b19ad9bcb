"""Allow ``python -m remotesync``."""

from .cli import main

main()
