"""Cyber Lab Custody — case lifecycle, approvals and chain-of-custody core."""

__version__ = "0.1.0"
