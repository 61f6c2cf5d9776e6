"""
jgoogle - Google CLI for Gmail, Calendar and Drive

This package provides the account store, the OAuth2 authorization flows and
the authenticated request helper behind the `jgoogle` command, plus thin
wrappers around the Gmail, Calendar and Drive REST APIs.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
