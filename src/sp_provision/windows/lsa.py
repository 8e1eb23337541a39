"""Local security policy backend built on the LSA API.

Wraps the handful of ``advapi32`` calls needed to read and extend an
account's rights:

* ``LookupAccountNameW`` -- account name to SID,
* ``LsaOpenPolicy`` / ``LsaClose``,
* ``LsaEnumerateAccountRights`` / ``LsaAddAccountRights``.

The DLL is loaded on first use, so importing this module is safe on any
platform.
"""
from __future__ import annotations

import ctypes
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sp_provision.core.errors import PrivilegeGrantFailure, UnknownIdentity
from sp_provision.core.types import PrivilegeKind

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = logging.getLogger(__name__)

# NTSTATUS / Win32 codes
STATUS_SUCCESS = 0x00000000
STATUS_OBJECT_NAME_NOT_FOUND = 0xC0000034
ERROR_ACCESS_DENIED = 5
ERROR_INSUFFICIENT_BUFFER = 122
ERROR_NONE_MAPPED = 1332

# Policy object access rights
POLICY_CREATE_ACCOUNT = 0x00000010
POLICY_LOOKUP_NAMES = 0x00000800


class LSA_UNICODE_STRING(ctypes.Structure):  # noqa: N801
    _fields_ = [
        ("Length", ctypes.c_ushort),
        ("MaximumLength", ctypes.c_ushort),
        ("Buffer", ctypes.c_void_p),
    ]


class LSA_OBJECT_ATTRIBUTES(ctypes.Structure):  # noqa: N801
    _fields_ = [
        ("Length", ctypes.c_ulong),
        ("RootDirectory", ctypes.c_void_p),
        ("ObjectName", ctypes.c_void_p),
        ("Attributes", ctypes.c_ulong),
        ("SecurityDescriptor", ctypes.c_void_p),
        ("SecurityQualityOfService", ctypes.c_void_p),
    ]


def _load_advapi32() -> Any:
    advapi32 = ctypes.WinDLL("advapi32", use_last_error=True)  # type: ignore[attr-defined]
    for fn in (
        advapi32.LsaOpenPolicy,
        advapi32.LsaClose,
        advapi32.LsaEnumerateAccountRights,
        advapi32.LsaAddAccountRights,
        advapi32.LsaFreeMemory,
        advapi32.LsaNtStatusToWinError,
    ):
        fn.restype = ctypes.c_ulong
    advapi32.LookupAccountNameW.restype = ctypes.c_int
    return advapi32


class LsaSecurityPolicy:
    """:class:`~sp_provision.core.interfaces.SecurityPolicy` for the local host."""

    def __init__(self, advapi32: Any = None) -> None:
        self._advapi32 = advapi32

    @property
    def advapi32(self) -> Any:
        if self._advapi32 is None:
            self._advapi32 = _load_advapi32()
        return self._advapi32

    # -- SecurityPolicy implementation ---------------------------------

    def account_rights(self, name: str) -> frozenset[PrivilegeKind]:
        sid = self._lookup_sid(name)
        with self._policy(POLICY_LOOKUP_NAMES) as handle:
            rights = ctypes.POINTER(LSA_UNICODE_STRING)()
            count = ctypes.c_ulong(0)
            status = self.advapi32.LsaEnumerateAccountRights(
                handle, sid, ctypes.byref(rights), ctypes.byref(count),
            )
            if status == STATUS_OBJECT_NAME_NOT_FOUND:
                # The account has no rights assigned at all.
                return frozenset()
            self._check(status, "LsaEnumerateAccountRights", name)
            try:
                held = {
                    ctypes.wstring_at(rights[i].Buffer, rights[i].Length // 2)
                    for i in range(count.value)
                }
            finally:
                self.advapi32.LsaFreeMemory(rights)
        return frozenset(p for p in PrivilegeKind if p.value in held)

    def add_account_rights(
        self, name: str, privileges: frozenset[PrivilegeKind]
    ) -> None:
        if not privileges:
            return
        sid = self._lookup_sid(name)
        values = sorted(p.value for p in privileges)
        array = (LSA_UNICODE_STRING * len(values))()
        buffers = []
        for i, value in enumerate(values):
            buf = ctypes.create_unicode_buffer(value)
            buffers.append(buf)
            array[i].Buffer = ctypes.addressof(buf)
            array[i].Length = len(value) * 2
            array[i].MaximumLength = (len(value) + 1) * 2
        with self._policy(POLICY_LOOKUP_NAMES | POLICY_CREATE_ACCOUNT) as handle:
            status = self.advapi32.LsaAddAccountRights(handle, sid, array, len(values))
            self._check(status, "LsaAddAccountRights", name)
        logger.debug("LsaAddAccountRights(%s, %s) succeeded", name, values)

    # -- helpers -------------------------------------------------------

    @contextmanager
    def _policy(self, access: int) -> Iterator[ctypes.c_void_p]:
        attrs = LSA_OBJECT_ATTRIBUTES()
        attrs.Length = ctypes.sizeof(LSA_OBJECT_ATTRIBUTES)
        handle = ctypes.c_void_p()
        status = self.advapi32.LsaOpenPolicy(
            None, ctypes.byref(attrs), access, ctypes.byref(handle),
        )
        self._check(status, "LsaOpenPolicy", None)
        try:
            yield handle
        finally:
            self.advapi32.LsaClose(handle)

    def _lookup_sid(self, name: str) -> ctypes.Array[ctypes.c_char]:
        sid_size = ctypes.c_ulong(0)
        domain_size = ctypes.c_ulong(0)
        use = ctypes.c_ulong(0)
        self.advapi32.LookupAccountNameW(
            None, name, None, ctypes.byref(sid_size),
            None, ctypes.byref(domain_size), ctypes.byref(use),
        )
        error = ctypes.get_last_error()  # type: ignore[attr-defined]
        if error == ERROR_NONE_MAPPED:
            raise UnknownIdentity(
                f"No local account named '{name}'", details={"name": name},
            )
        if error != ERROR_INSUFFICIENT_BUFFER:
            raise PrivilegeGrantFailure(
                f"LookupAccountNameW failed for '{name}' (error {error})",
                details={"name": name, "win_error": error},
            )
        sid = ctypes.create_string_buffer(sid_size.value)
        domain = ctypes.create_unicode_buffer(domain_size.value)
        if not self.advapi32.LookupAccountNameW(
            None, name, sid, ctypes.byref(sid_size),
            domain, ctypes.byref(domain_size), ctypes.byref(use),
        ):
            error = ctypes.get_last_error()  # type: ignore[attr-defined]
            raise PrivilegeGrantFailure(
                f"LookupAccountNameW failed for '{name}' (error {error})",
                details={"name": name, "win_error": error},
            )
        return sid

    def _check(self, status: int, call: str, name: str | None) -> None:
        if status == STATUS_SUCCESS:
            return
        error = self.advapi32.LsaNtStatusToWinError(status)
        message = f"{call} failed with NTSTATUS {status:#010x} (error {error})"
        if error == ERROR_ACCESS_DENIED:
            message += "; run from an elevated administrator session"
        raise PrivilegeGrantFailure(
            message,
            details={"name": name, "ntstatus": status, "win_error": error},
        )
