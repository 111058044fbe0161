"""
Troll Bait Web — Unprotect Tab
==============================

Decrypt an uploaded envelope with a certificate whose private key is in the
session store. The recipients listed in the envelope header are shown so the
user can see which keys would work.
"""

from __future__ import annotations

import io
import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

import streamlit as st

# -- project-root import ---------------------------------------------------
_root = str(Path(__file__).resolve().parent.parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import envelope  # noqa: E402

from key_store import describe, get_store, list_certificates  # noqa: E402
from utils import format_thumbprint, human_file_size, safe_output_filename  # noqa: E402

_AUTO = "auto"


# ---------------------------------------------------------------------------
# Public render function
# ---------------------------------------------------------------------------

def render() -> None:
    """Render the Unprotect tab."""

    uploaded = st.file_uploader("Choose a protected file", key="unprotect_uploader")
    if not uploaded:
        return

    st.caption(f"**{uploaded.name}**  —  {human_file_size(uploaded.size)}")
    try:
        blobs = envelope.read_recipients(io.BytesIO(uploaded.getvalue()))
    except envelope.FormatError as e:
        st.error(f"Not a protected file: {e}")
        return

    store = get_store()
    with st.expander(f"Recipients ({len(blobs)})", expanded=False):
        for blob in blobs:
            entry = store.get(blob.thumbprint)
            note = "  ✅ private key available" if entry and entry.has_private_key else ""
            st.code(format_thumbprint(blob.thumbprint) + note, language=None)

    usable = [e for e in list_certificates() if e.has_private_key]
    options = {_AUTO: "Choose automatically"}
    options.update({e.thumbprint: describe(e) for e in usable})
    choice = st.selectbox(
        "Decrypt as",
        list(options.keys()),
        format_func=lambda t: options[t],
        key="unprotect_identity",
    )

    st.markdown("---")
    if st.button("🔓 Unprotect File", type="primary", use_container_width=True, key="unprotect_action"):
        identifier = None if choice == _AUTO else choice
        try:
            result_bytes = _unprotect(uploaded, identifier)
        except envelope.KeyNotFoundError as e:
            st.error(f"No matching key: {e}")
            return
        except envelope.CryptoError as e:
            st.error(f"Decryption failed: {e}")
            return
        except envelope.FormatError as e:
            st.error(f"Format error: {e}")
            return
        except envelope.EnvelopeError as e:
            st.error(f"Error: {e}")
            return

        out_name = safe_output_filename(uploaded.name, protecting=False)
        st.success(f"Unprotected  ({human_file_size(len(result_bytes))})")
        st.download_button(
            f"📥 Download {out_name}",
            data=result_bytes,
            file_name=out_name,
            mime="application/octet-stream",
            key="unprotect_download",
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _unprotect(uploaded, identifier: Optional[str]) -> bytes:
    with tempfile.NamedTemporaryFile(delete=False, suffix=".enc") as tmp_in:
        tmp_in.write(uploaded.getvalue())
        tmp_in_path = tmp_in.name
    tmp_out_path = tmp_in_path + ".dec"

    try:
        envelope.unprotect_file(tmp_in_path, tmp_out_path, identifier, resolver=get_store())
        with open(tmp_out_path, "rb") as f:
            return f.read()
    finally:
        for p in (tmp_in_path, tmp_out_path):
            try:
                os.unlink(p)
            except OSError:
                pass
