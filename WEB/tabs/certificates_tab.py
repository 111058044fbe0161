"""
Troll Bait Web — Certificates Tab
=================================

Import recipient certificates (PEM or DER) and, optionally, their private
keys into the session store. Certificates alone are enough to protect files
for someone; unprotecting needs the private key.
"""

from __future__ import annotations

import sys
from pathlib import Path

import streamlit as st

# -- project-root import ---------------------------------------------------
_root = str(Path(__file__).resolve().parent.parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import envelope  # noqa: E402

from key_store import import_certificate, list_certificates  # noqa: E402
from utils import format_thumbprint  # noqa: E402


def render() -> None:
    """Render the Certificates tab."""

    with st.expander("Import Certificate", expanded=not list_certificates()):
        cert_file = st.file_uploader(
            "Certificate (.pem, .crt, .cer, .der)",
            type=["pem", "crt", "cer", "der"],
            key="cert_upload",
        )
        key_file = st.file_uploader(
            "Private key (optional)",
            type=["pem", "key", "der"],
            key="cert_key_upload",
        )
        passphrase = st.text_input(
            "Private key passphrase",
            type="password",
            placeholder="Leave empty if the key is not encrypted",
            key="cert_key_passphrase",
        )
        if st.button("Import", key="cert_import"):
            if not cert_file:
                st.error("Upload a certificate first.")
            else:
                try:
                    entry = import_certificate(
                        cert_file.getvalue(),
                        key_file.getvalue() if key_file else None,
                        passphrase=passphrase or None,
                    )
                    st.success(f"Imported {entry.subject}")
                except envelope.FormatError as e:
                    st.error(f"Could not read file: {e}")
                except envelope.CryptoError as e:
                    st.error(str(e))

    certificates = list_certificates()
    if not certificates:
        st.info("No certificates in this session.")
        return

    st.caption(f"{len(certificates)} certificate(s) in this session")
    for entry in certificates:
        with st.container(border=True):
            info = entry.to_dict()
            st.markdown(f"**{info['subject']}**")
            has_private = "Certificate + Private Key" if entry.has_private_key else "Certificate Only"
            st.caption(f"{has_private}  •  expires {info['not_valid_after'][:10]}")
            st.code(format_thumbprint(entry.thumbprint), language=None)
