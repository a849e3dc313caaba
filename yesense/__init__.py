"""Stream decoding, command building and a serial driver for Yesense inertial measurement units."""

__version__ = "0.1.0"