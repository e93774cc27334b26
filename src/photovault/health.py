"""
Health checks for the photovault application.

Each check returns a plain dict with at least ``status`` (``healthy`` or
``unhealthy``), ``message`` and ``timestamp`` so the report can be shown on
the Streamlit page or dumped as JSON for uptime probes.
"""

import json
import os
import platform
import time
from collections.abc import Callable
from typing import Any

import streamlit as st
from google.cloud import storage  # type: ignore[attr-defined]

from photovault import __version__
from photovault.config import (
    describe_settings,
    get_database_path,
    get_env,
    get_environment,
    get_missing_required_keys,
)
from photovault.logging_config import get_logger
from photovault.models.database import DatabaseManager

logger = get_logger(__name__)

HEALTHY = "healthy"
UNHEALTHY = "unhealthy"


def _result(status: str, message: str, **extra: Any) -> dict[str, Any]:
    return {"status": status, "message": message, "timestamp": time.time(), **extra}


def check_database_health(db_path: str | None = None) -> dict[str, Any]:
    """Open the metadata database and verify that all tables and columns exist."""
    db_path = db_path or get_database_path()
    if db_path != ":memory:" and not os.path.exists(db_path):
        return _result(UNHEALTHY, f"Database file not found: {db_path}")

    try:
        with DatabaseManager(db_path) as db:
            db.execute_query("SELECT 1")
            schema_ok = db.verify_schema()
    except Exception as e:
        logger.error("database_health_check_failed", db_path=db_path, error=str(e))
        return _result(UNHEALTHY, f"Database connection failed: {e}")

    if not schema_ok:
        return _result(UNHEALTHY, "Database schema is incomplete")
    return _result(HEALTHY, "Database connection successful")


def check_storage_health() -> dict[str, Any]:
    """Check that the photos bucket exists and is reachable."""
    bucket_name = get_env("GCS_PHOTOS_BUCKET")
    if not bucket_name:
        return _result(UNHEALTHY, "GCS_PHOTOS_BUCKET is not configured")

    try:
        client = storage.Client(project=get_env("GOOGLE_CLOUD_PROJECT"))
        exists = client.bucket(bucket_name).exists()
    except Exception as e:
        logger.error("storage_health_check_failed", bucket=bucket_name, error=str(e))
        return _result(UNHEALTHY, f"Storage connection failed: {e}")

    if not exists:
        return _result(UNHEALTHY, f"Bucket not found: {bucket_name}", bucket=bucket_name)
    return _result(HEALTHY, f"Storage connection successful to bucket: {bucket_name}", bucket=bucket_name)


def check_environment_health() -> dict[str, Any]:
    missing_vars = get_missing_required_keys()
    if missing_vars:
        return _result(
            UNHEALTHY,
            f"Missing configuration: {', '.join(missing_vars)}",
            missing_vars=missing_vars,
        )
    return _result(HEALTHY, "Environment configuration is valid", config=describe_settings())


HEALTH_CHECKS: dict[str, Callable[[], dict[str, Any]]] = {
    "database": check_database_health,
    "storage": check_storage_health,
    "environment": check_environment_health,
}


def get_application_info() -> dict[str, Any]:
    return {
        "name": "photovault",
        "version": __version__,
        "environment": get_environment(),
        "python_version": platform.python_version(),
    }


def perform_health_check() -> dict[str, Any]:
    """Run every registered check and combine the results."""
    start_time = time.time()
    checks = {name: check() for name, check in HEALTH_CHECKS.items()}
    unhealthy_services = [name for name, result in checks.items() if result["status"] != HEALTHY]

    report: dict[str, Any] = {
        "status": UNHEALTHY if unhealthy_services else HEALTHY,
        "timestamp": time.time(),
        "duration_ms": round((time.time() - start_time) * 1000, 2),
        "application": get_application_info(),
        "checks": checks,
    }
    if unhealthy_services:
        report["unhealthy_services"] = unhealthy_services

    logger.info(
        "health_check_completed",
        status=report["status"],
        duration_ms=report["duration_ms"],
        unhealthy_services=unhealthy_services,
    )
    return report


def health_check_json() -> str:
    return json.dumps(perform_health_check(), indent=2, default=str)


def render_health_page() -> None:
    """Render the health report; ``?format=json`` returns the raw JSON instead."""
    st.set_page_config(page_title="Health Check - PhotoVault", page_icon="🩺", layout="wide")

    if st.query_params.get("format") == "json":
        st.text(health_check_json())
        return

    st.title("🩺 Health Check")
    with st.spinner("Verificando serviços..."):
        report = perform_health_check()

    summary = f"checked in {report['duration_ms']}ms"
    if report["status"] == HEALTHY:
        st.success(f"Application is healthy ({summary})")
    else:
        st.error(f"Application is unhealthy ({summary})")
        st.warning(f"Unhealthy services: {', '.join(report['unhealthy_services'])}")

    for column, (label, key) in zip(
        st.columns(3), (("Name", "name"), ("Version", "version"), ("Environment", "environment")), strict=True
    ):
        column.metric(label, report["application"][key])

    for service, result in report["checks"].items():
        healthy = result["status"] == HEALTHY
        with st.expander(f"{service.title()} Service", expanded=not healthy):
            if healthy:
                st.success(result["message"])
            else:
                st.error(result["message"])
            st.json(result)
