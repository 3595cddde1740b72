"""dough: Markdown slides presented in the terminal."""

__version__ = "0.3.0"
