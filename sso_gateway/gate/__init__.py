"""
Access Gate
===========
Request-level login redirects.
"""

from .middleware import AccessGateMiddleware

__all__ = ["AccessGateMiddleware"]
