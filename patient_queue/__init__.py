"""Patient queue position and estimated wait-time service."""

__version__ = "0.1.0"
