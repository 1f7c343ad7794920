"""
Replication tracker package.

This package contains a small research-study data-management backend:
SQLAlchemy models for articles, studies and their replications, a
FastAPI server exposing study endpoints and an admin statistics
report, and a Streamlit dashboard for the report.
"""
