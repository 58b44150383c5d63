"""Canvas Flow backend: Lean Canvas task pipeline on top of a Dify workflow."""

from .app import create_app
from .config import get_dify_settings

__all__ = ["create_app", "get_dify_settings"]
