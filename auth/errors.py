"""
auth/errors.py -- Failure kinds raised by the token codec.

The codec is the one layer that raises: python-jose reports failures as
exceptions, and these subclasses keep the three cases apart so the gate can
log which one happened. The gate is the single place that catches them and
turns them into a GateResult; nothing above the gate ever sees them.
"""


class TokenError(Exception):
    """Base class for every codec failure."""


class MalformedToken(TokenError):
    """Not a structurally valid token, or claims that cannot be encoded."""


class InvalidSignature(TokenError):
    """Structurally valid, but the HS256 signature does not verify."""


class TokenExpired(TokenError):
    """Correctly signed, but exp is strictly before the clock's now."""
