"""Allow running as ``python -m fwr``."""

from fwr.cli import app

app()
