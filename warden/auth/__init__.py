"""Authentication against the hosting platform."""

from warden.auth.session import Session, authenticate

__all__ = ["Session", "authenticate"]
