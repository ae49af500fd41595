"""Line-oriented pattern scanner and audit runner for Solidity sources."""

__version__ = "0.4.0"
