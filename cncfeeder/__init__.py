"""Serial-port feeder for sending programs to, and receiving programs from, CNC machines."""

__version__ = "0.1.0"
__all__ = ["__version__"]