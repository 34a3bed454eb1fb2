"""ShareIsCare: self-hosted file sharing over HTTP."""

__version__ = "1.2.0"
