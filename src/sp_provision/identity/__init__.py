"""Account resolution.

* **IdentityResolver** -- resolves an explicitly named account, creates a
  new one, or falls back to the operator's session account.
"""
from __future__ import annotations

from sp_provision.identity.resolver import IdentityResolver

__all__ = [
    "IdentityResolver",
]
