"""pocctl — declarative vulnerability-verification (PoC) runner."""

__version__ = "0.1.0"
