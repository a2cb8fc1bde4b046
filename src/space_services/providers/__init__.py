"""Provider interfaces for space-services."""
from __future__ import annotations

from .cf_cli import CfCliError, CfCliSession, SpaceFields

__all__ = [
    "CfCliError",
    "CfCliSession",
    "SpaceFields",
]
