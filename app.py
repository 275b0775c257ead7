import streamlit as st

from taskboard.config import PAGE_TITLE
from taskboard.logging_config import init_logging
from taskboard.ui import run_app


def main():
    st.set_page_config(
        page_title=PAGE_TITLE,
        page_icon="🎓",
        layout="wide"
    )
    init_logging()
    run_app()


if __name__ == "__main__":
    main()
