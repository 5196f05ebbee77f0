"""RSVP token generation."""

import secrets

RSVP_TOKEN_BYTES = 24


def generate_rsvp_token() -> str:
    """Return an unguessable, URL-safe token for public RSVP links."""
    return secrets.token_urlsafe(RSVP_TOKEN_BYTES)
