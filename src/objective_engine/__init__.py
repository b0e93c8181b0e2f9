"""Objective progress tracking and reward issuance."""

__version__ = "0.1.0"
