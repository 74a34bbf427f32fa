"""Common middleware for Boxoffice."""

from .observability import StructlogContextMiddleware

__all__ = ["StructlogContextMiddleware"]
