"""CAN frame notation, ASC log conversion, J1939 socket tools and an SLCAN bridge."""

__version__ = "0.1.0"