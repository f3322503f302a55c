from pathlib import Path

import streamlit as st

from common import get_config

ROOT = Path(__file__).resolve().parents[1]


def show_markdown(relative_path):
    path = ROOT / relative_path
    if not path.exists():
        st.error(f"File not found: {relative_path}")
        return
    st.markdown(path.read_text(encoding="utf-8"), unsafe_allow_html=True)


config = get_config()

show_markdown("assets/markdown/ui/welcome.md")
st.info(
    f"Requests go to `{config.endpoint}` (timeout {config.timeout_s:g} s). "
    f"Set `LENS_STUDIO_CONFIG` to point at another config file."
)
with st.expander("README"):
    show_markdown("README.MD")
