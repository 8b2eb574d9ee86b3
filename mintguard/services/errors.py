"""
Error types raised by the fingerprinting and matching services.
"""


class MintguardError(Exception):
    """Base class for all mintguard errors."""


class DecodeError(MintguardError):
    """Input bytes could not be decoded as a raster image."""


class MalformedFingerprint(MintguardError):
    """A fingerprint is not a 16-digit hexadecimal value."""


class CorpusUnavailable(MintguardError):
    """The published catalog could not be read."""
