"""
Troll Bait Web — Protect Tab
============================

Encrypt an uploaded file for one or more recipient certificates from the
session store. The upload is spooled to a temporary file so
``envelope.protect_file`` streams it in chunks.
"""

from __future__ import annotations

import os
import sys
import tempfile
from pathlib import Path

import streamlit as st

# -- project-root import ---------------------------------------------------
_root = str(Path(__file__).resolve().parent.parent.parent)
if _root not in sys.path:
    sys.path.insert(0, _root)

import envelope  # noqa: E402

from key_store import describe, get_store, list_certificates  # noqa: E402
from utils import human_file_size, safe_output_filename  # noqa: E402


# ---------------------------------------------------------------------------
# Public render function
# ---------------------------------------------------------------------------

def render() -> None:
    """Render the Protect tab."""

    uploaded = st.file_uploader("Choose a file to protect", key="protect_uploader")
    if uploaded:
        st.caption(f"**{uploaded.name}**  —  {human_file_size(uploaded.size)}")

    certificates = list_certificates()
    if not certificates:
        st.info("No certificates yet. Import recipients in the **Certificates** tab.")
        return

    options = {e.thumbprint: describe(e) for e in certificates}
    selected = st.multiselect(
        "Recipients",
        list(options.keys()),
        format_func=lambda t: options[t],
        key="protect_recipients",
    )

    st.markdown("---")
    if st.button("🔒 Protect File", type="primary", use_container_width=True, key="protect_action"):
        if not uploaded:
            st.error("Please upload a file first.")
            return
        if not selected:
            st.error("Select at least one recipient.")
            return

        try:
            result_bytes, result = _protect(uploaded, selected)
        except envelope.KeyNotFoundError as e:
            st.error(f"Recipient not found: {e}")
            return
        except envelope.CryptoError as e:
            st.error(f"Key wrapping failed: {e}")
            return
        except envelope.EnvelopeError as e:
            st.error(f"Error: {e}")
            return

        st.success(
            f"Protected for {len(result.recipients)} recipient(s)  "
            f"({human_file_size(len(result_bytes))})"
        )
        out_name = safe_output_filename(uploaded.name, protecting=True)
        st.download_button(
            f"📥 Download {out_name}",
            data=result_bytes,
            file_name=out_name,
            mime="application/octet-stream",
            key="protect_download",
        )


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _protect(uploaded, thumbprints: list[str]) -> tuple[bytes, envelope.OperationResult]:
    with tempfile.NamedTemporaryFile(delete=False, suffix=".bin") as tmp_in:
        tmp_in.write(uploaded.getvalue())
        tmp_in_path = tmp_in.name
    tmp_out_path = tmp_in_path + ".enc"

    progress_bar = st.progress(0, text="Encrypting…")

    def progress_cb(done: int, total: int) -> None:
        if total > 0:
            progress_bar.progress(min(done / total, 1.0), text=f"Encrypting… {human_file_size(done)}")

    try:
        result = envelope.protect_file(
            tmp_in_path,
            tmp_out_path,
            thumbprints,
            resolver=get_store(),
            progress_callback=progress_cb,
        )
        progress_bar.progress(1.0, text="Done!")
        with open(tmp_out_path, "rb") as f:
            return f.read(), result
    finally:
        for p in (tmp_in_path, tmp_out_path):
            try:
                os.unlink(p)
            except OSError:
                pass
