"""Consultation calls: token issuance, session state and the call-session adapter."""

__version__ = "1.0.0"
