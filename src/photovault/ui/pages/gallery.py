"""Gallery page for photovault application."""

import streamlit as st
import structlog

from photovault.models.photo import PhotoRecord
from photovault.models.user import Session
from photovault.ui.components.notifications import notify_result, notify_results
from photovault.ui.handlers.auth import sign_out
from photovault.ui.handlers.gallery import delete_photo, get_photo_url, load_photos
from photovault.ui.handlers.upload import format_file_size, upload_photos

logger = structlog.get_logger(__name__)

GRID_COLUMNS = 4


def render_upload_section(session: Session) -> None:
    """Render the multi-file uploader and upload the selection."""
    uploaded_files = st.file_uploader(
        "Arraste fotos aqui ou clique para selecionar",
        accept_multiple_files=True,
        key=f"uploader_{st.session_state.get('uploader_generation', 0)}",
    )

    if uploaded_files and st.button("Enviar fotos", type="primary"):
        files = [
            {"file_name": item.name, "content_type": item.type, "data": item.getvalue()} for item in uploaded_files
        ]
        with st.spinner("Enviando..."):
            results = upload_photos(session, files)
        notify_results(results)
        st.session_state.uploader_generation = st.session_state.get("uploader_generation", 0) + 1
        st.rerun()


def photo_caption(photo: PhotoRecord) -> str:
    if photo.file_size is None:
        return photo.file_name
    return f"{photo.file_name} ({format_file_size(photo.file_size)})"


def render_photo_grid(session: Session) -> None:
    """Render the caller's photos with delete buttons."""
    result = load_photos(session)
    if not result["success"]:
        notify_result(result)
        return

    photos = result["photos"]
    if not photos:
        st.info("Nenhuma foto ainda. Envie sua primeira foto!")
        return

    columns = st.columns(GRID_COLUMNS)
    for index, photo in enumerate(photos):
        with columns[index % GRID_COLUMNS]:
            st.image(get_photo_url(photo.file_path), caption=photo_caption(photo), use_container_width=True)
            if st.button("🗑️ Excluir", key=f"delete_{photo.id}"):
                notify_result(delete_photo(session, photo))
                st.rerun()


def render_gallery_page(session: Session) -> None:
    """Render the gallery for the signed-in user."""
    header, logout = st.columns([4, 1])
    with header:
        st.markdown("## 📷 PhotoVault")
        st.caption(session.user.email)
    with logout:
        if st.button("Sair", use_container_width=True):
            notify_result(sign_out(session))
            st.session_state.session = None
            st.rerun()

    render_upload_section(session)
    st.divider()
    render_photo_grid(session)
