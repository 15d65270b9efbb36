"""Signed download link module."""

from .signer import LinkSigner

__all__ = ["LinkSigner"]
