"""Non-blocking TCP echo server and stress client."""

__version__ = "0.1.0"
__all__ = ["__version__"]