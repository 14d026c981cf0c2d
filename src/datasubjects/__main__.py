"""Allow ``python -m datasubjects``."""

from datasubjects.cli import app

app()
