"""
Streamlit admin dashboard for the replication tracker.

The page reads the aggregate statistics report straight from the
database and shows it as a table and a bar chart of last-day activity.
"""

from __future__ import annotations

import streamlit as st  # type: ignore

from replication_app.backend import database as db
from replication_app.backend.stats import get_db_stats, stats_to_frame


def show_stats() -> None:
    """Render the per-model statistics report."""
    st.header("Database statistics")
    try:
        db.init_db()
        with db.get_db() as session:
            stats = get_db_stats(session)
    except Exception as e:
        st.error(f"Failed to load statistics: {e}")
        return
    df = stats_to_frame(stats)
    col1, col2, col3 = st.columns(3)
    col1.metric("Studies", int(df.loc["studies", "total"]))
    col2.metric("Replications", int(df.loc["replications", "total"]))
    col3.metric("Articles", int(df.loc["articles", "total"]))
    st.dataframe(df, use_container_width=True)
    st.subheader("Last 24 hours")
    st.bar_chart(df[["created_last_day", "updated_last_day"]])


def main() -> None:
    """Entry point for the Streamlit application."""
    st.set_page_config(
        page_title="Replication Tracker Admin",
        page_icon="📊",
        layout="wide",
    )
    with st.sidebar:
        st.title("Admin")
        if st.button("Refresh"):
            st.rerun()
    show_stats()


if __name__ == "__main__":
    main()
