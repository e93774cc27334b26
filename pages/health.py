"""
Health check page for Streamlit application.

Append ``?format=json`` to get the raw health report.
"""

from photovault.health import render_health_page

render_health_page()
