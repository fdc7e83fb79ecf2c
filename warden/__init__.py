"""Warden — apply and verify branch-protection policy on hosted repositories."""

__version__ = "0.1.0"
