"""
Main Streamlit application for photovault.

This is the entry point for the photo storage web application.
"""

import streamlit as st

from photovault.logging_config import configure_structured_logging, get_logger, user_context
from photovault.services.auth import AuthEvent, AuthEventType, get_identity_service
from photovault.ui.handlers.auth import restore_session
from photovault.ui.pages.auth import render_auth_page
from photovault.ui.pages.gallery import render_gallery_page

# Configure structured logging
configure_structured_logging()
logger = get_logger(__name__)


def initialize_session_state() -> None:
    """Initialize session state variables."""
    if "session" not in st.session_state:
        st.session_state.session = None

    if "uploader_generation" not in st.session_state:
        st.session_state.uploader_generation = 0


def apply_auth_events(events: list[AuthEvent]) -> None:
    """Drop the held session when an event ends it (sign-out elsewhere, user deleted)."""
    session = st.session_state.session
    if session is None:
        return

    for event in events:
        if event.type in (AuthEventType.SIGNED_OUT, AuthEventType.USER_DELETED) and event.user_id == session.user_id:
            logger.info("session_ended_by_event", event_type=event.type.value, user_id=event.user_id)
            # A SIGNED_OUT for another session of the same user leaves this one valid
            st.session_state.session = restore_session(session)
            return


def main() -> None:
    """Main application entry point."""
    st.set_page_config(
        page_title="PhotoVault",
        page_icon="📷",
        layout="wide",
        menu_items={"Get Help": None, "Report a bug": None, "About": "PhotoVault - Personal photo storage"},
    )

    initialize_session_state()
    apply_auth_events(get_identity_service().events.poll())

    # Expired or revoked tokens fall back to the auth page
    st.session_state.session = restore_session(st.session_state.session)

    logger.debug("session_initialized", authenticated=st.session_state.session is not None)

    if st.session_state.session is None:
        render_auth_page()
    else:
        with user_context(st.session_state.session.user_id):
            render_gallery_page(st.session_state.session)


if __name__ == "__main__":
    main()
