"""dev-prism: isolated development sessions with their own ports and environment."""

__version__ = "0.1.0"
