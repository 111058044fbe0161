"""
Troll Bait — Web Edition
========================

Streamlit application entry point.

Launch:
    streamlit run WEB/app.py
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

# -- Ensure project root is importable ------------------------------------
_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

# -- Ensure WEB/ directory is importable ----------------------------------
_web_root = str(Path(__file__).resolve().parent)
if _web_root not in sys.path:
    sys.path.insert(0, _web_root)

import streamlit as st  # noqa: E402

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# ---------------------------------------------------------------------------
# Page config: must be the first Streamlit command
# ---------------------------------------------------------------------------

st.set_page_config(
    page_title="Troll Bait",
    page_icon="🔐",
    layout="wide",
    initial_sidebar_state="collapsed",
)

st.markdown(
    """
    <style>
    .stButton > button[kind="primary"] {
        background-color: #e94560;
        border-color: #e94560;
    }
    .trollbait-header {
        text-align: center;
        padding: 1rem 0 0.5rem 0;
    }
    .trollbait-header p {
        color: #a0a0b8;
        font-size: 0.95rem;
    }
    </style>
    <div class="trollbait-header">
        <h1>🔐 Troll Bait</h1>
        <p>Multi-recipient file encryption with X.509 certificates</p>
    </div>
    """,
    unsafe_allow_html=True,
)

# ---------------------------------------------------------------------------
# Sidebar
# ---------------------------------------------------------------------------

with st.sidebar:
    st.markdown("### About")
    st.markdown(
        "Files are encrypted with AES-256-CBC. The AES key is wrapped with "
        "RSA-OAEP for every selected recipient certificate, so any one of "
        "the matching private keys can open the file."
    )
    st.markdown("---")
    st.markdown("#### Security Notice")
    st.markdown(
        "• Certificates and keys exist **only** in this browser session.  \n"
        "• Closing the tab forgets all imported private keys.  \n"
        "• Output from a failed run is discarded, never offered for download."
    )

# ---------------------------------------------------------------------------
# Tabs
# ---------------------------------------------------------------------------

from tabs.protect_tab import render as render_protect  # noqa: E402
from tabs.unprotect_tab import render as render_unprotect  # noqa: E402
from tabs.certificates_tab import render as render_certificates  # noqa: E402

tab_protect, tab_unprotect, tab_certs = st.tabs(
    ["🔒 Protect", "🔓 Unprotect", "📜 Certificates"]
)

with tab_protect:
    render_protect()

with tab_unprotect:
    render_unprotect()

with tab_certs:
    render_certificates()
