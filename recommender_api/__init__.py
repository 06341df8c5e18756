"""Candidate search filter service: rule-based requirement inference."""

__version__ = "0.1.0"
