"""rulebook: manage local and GitHub-backed rule repositories from the terminal."""

__version__ = "0.1.0"
