"""Expose the application factory at package level.

``from lending_api import create_app`` saves callers from traversing the
package structure.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
