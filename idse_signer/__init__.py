"""
Certificate conversion, PKCS#7 signing and challenge/response sign-in for the IDSE portal.
"""

__version__ = "0.1.0"
