# app.py
import re
from pathlib import Path

import streamlit as st

from common import get_config

ROOT = Path(__file__).resolve().parent


def page_title(py_file):
    title = py_file.stem.replace("_", " ").capitalize()
    return re.sub(r"^\d+\s*", "", title)


def lens_navigation(pages_dir="pages/lens", icon="🔭"):
    pages = [st.Page(str(ROOT / "pages" / "main.py"), title="Home", icon="🏠", default=True)]
    for py_file in sorted((ROOT / pages_dir).glob("*.py")):
        pages.append(st.Page(str(py_file), title=page_title(py_file), icon=icon))
    return {"Lens image studio": pages}


config = get_config()
st.set_page_config(page_title="Lens image studio", page_icon="🔭", layout="wide")
st.sidebar.caption(f"Service: {config.endpoint}")

pg = st.navigation(lens_navigation())
pg.run()
