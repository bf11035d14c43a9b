"""SearchGate - privacy-preserving metasearch gateway."""

__version__ = "0.1.0"
