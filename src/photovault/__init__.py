"""
photovault - Personal photo storage web application with Streamlit

Every user keeps a private gallery:
- Email/password accounts with signed session tokens
- Photo files stored in Google Cloud Storage under a per-user folder
- Photo metadata in DuckDB, guarded by per-row ownership policies
"""

__version__ = "0.1.0"
__author__ = "photovault"
__description__ = "Personal photo storage web application with Streamlit"
