"""
Troll Bait Web — Session Certificate Store
==========================================

Keep a :class:`keystore.CertificateStore` in ``st.session_state`` so that
certificates and private keys imported in the browser live only as long as
the session. Nothing is written to disk.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import streamlit as st

# -- make project root importable so we can ``import keystore`` -----------
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import keystore  # noqa: E402

_STORE_KEY = "trollbait_certificates"


def get_store() -> keystore.CertificateStore:
    """Return the session's certificate store, creating it on first use."""
    if _STORE_KEY not in st.session_state:
        st.session_state[_STORE_KEY] = keystore.CertificateStore()
    return st.session_state[_STORE_KEY]


def import_certificate(
    cert_data: bytes,
    key_data: Optional[bytes] = None,
    passphrase: Optional[str] = None,
) -> keystore.CertificateEntry:
    """
    Add an uploaded certificate (PEM or DER) to the session store.

    If *key_data* is given it must be the matching private key.
    """
    cert = keystore.load_certificate(cert_data)
    private_key = None
    if key_data:
        private_key = keystore.load_private_key(key_data, passphrase=passphrase)
    return get_store().add_certificate(cert, private_key=private_key)


def list_certificates() -> list[keystore.CertificateEntry]:
    return get_store().list_certificates()


def describe(entry: keystore.CertificateEntry) -> str:
    """One-line label for select boxes."""
    key_note = "  🔑" if entry.has_private_key else ""
    return f"{entry.subject}  ({entry.thumbprint[:12]}…){key_note}"
