"""Packet, connection and protocol models with DNS and gRPC dissectors."""

__version__ = "0.1.0"