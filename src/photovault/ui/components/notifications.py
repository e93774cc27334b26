"""Transient notifications for handler results."""

from typing import Any

import streamlit as st


def notify_result(result: dict[str, Any]) -> None:
    """Show a handler result as a toast: its message on success, its error otherwise."""
    if result.get("success"):
        if result.get("message"):
            st.toast(result["message"], icon="✅")
    else:
        st.toast(result.get("error", "Ocorreu um erro."), icon="⚠️")


def notify_results(results: list[dict[str, Any]]) -> None:
    for result in results:
        notify_result(result)
