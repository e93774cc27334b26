"""Sign-in / sign-up page for photovault application."""

import streamlit as st
import structlog

from photovault.ui.components.notifications import notify_result
from photovault.ui.handlers.auth import sign_in, sign_up

logger = structlog.get_logger(__name__)


def render_auth_page() -> None:
    """Render the login and sign-up tabs."""
    st.markdown("## 📷 PhotoVault")
    st.caption("Sua galeria pessoal de fotos")

    login_tab, signup_tab = st.tabs(["Entrar", "Cadastrar"])

    with login_tab:
        with st.form("login_form"):
            email = st.text_input("Email", key="login_email")
            password = st.text_input("Senha", type="password", key="login_password")
            submitted = st.form_submit_button("Entrar", use_container_width=True, type="primary")

        if submitted:
            result = sign_in(email, password)
            notify_result(result)
            if result["success"]:
                st.session_state.session = result["session"]
                st.rerun()

    with signup_tab:
        with st.form("signup_form"):
            email = st.text_input("Email", key="signup_email")
            password = st.text_input("Senha", type="password", key="signup_password")
            submitted = st.form_submit_button("Criar conta", use_container_width=True)

        if submitted:
            notify_result(sign_up(email, password))
