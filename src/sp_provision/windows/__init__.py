"""Windows security provisioning.

* **PrivilegeGrantor** -- adds the runner account rights to the local
  security policy.
* **DirectoryAccessGrantor** -- grants a restricted account access to
  working directories.
* **LsaSecurityPolicy**, **NetUserIdentityStore**, **IcaclsAccessControl**
  -- the host backends used on a real Windows machine.
"""
from __future__ import annotations

from sp_provision.windows.accounts import NetUserIdentityStore
from sp_provision.windows.acl import (
    DirectoryAccessGrantor,
    IcaclsAccessControl,
    parse_icacls,
)
from sp_provision.windows.lsa import LsaSecurityPolicy
from sp_provision.windows.privileges import PrivilegeGrantor

__all__ = [
    "DirectoryAccessGrantor",
    "IcaclsAccessControl",
    "LsaSecurityPolicy",
    "NetUserIdentityStore",
    "PrivilegeGrantor",
    "parse_icacls",
]
