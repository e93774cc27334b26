"""
Batch upload of a local image directory into a user's gallery.

Usage:
    invoke batch-upload --directory ./photos --email me@example.com --password secret
"""

import mimetypes
import os

import structlog
from dotenv import load_dotenv
from invoke import Context, task

from photovault.logging_config import configure_structured_logging, user_context
from photovault.ui.handlers.auth import sign_in, sign_out
from photovault.ui.handlers.upload import upload_photos

logger = structlog.get_logger()


def find_image_files(directory: str, recursive: bool = False) -> list[str]:
    """List files under ``directory`` whose guessed MIME type is an image, sorted by path."""
    candidates = []
    if recursive:
        for root, _, files in os.walk(directory):
            candidates.extend(os.path.join(root, name) for name in files)
    else:
        candidates = [
            os.path.join(directory, name)
            for name in os.listdir(directory)
            if os.path.isfile(os.path.join(directory, name))
        ]

    return sorted(path for path in candidates if (mimetypes.guess_type(path)[0] or "").startswith("image/"))


@task
def batch_upload(
    c: Context,
    directory: str,
    email: str,
    password: str,
    env_file: str = ".env",
    recursive: bool = False,
    dry_run: bool = False,
):
    """
    Upload images from a local directory in batch.

    Args:
        c (Context): Invoke context.
        directory (str): Path to the directory containing images.
        email (str): Account email to sign in with.
        password (str): Account password.
        env_file (str): Path to the environment file. Default is '.env'.
        recursive (bool): Search for images in subdirectories. Default is False.
        dry_run (bool): If True, lists files to be processed without uploading. Default is False.
    """
    if os.path.exists(env_file):
        load_dotenv(dotenv_path=env_file)
    configure_structured_logging()

    if not os.path.isdir(directory):
        logger.error("batch_directory_not_found", directory=directory)
        return

    image_files = find_image_files(directory, recursive=recursive)
    if not image_files:
        logger.warning("batch_no_images_found", directory=directory)
        return

    logger.info("batch_upload_started", directory=directory, files=len(image_files), dry_run=dry_run)

    if dry_run:
        print("\n--- Dry Run Mode: Files to be processed ---")
        for file_path in image_files:
            print(f"- {file_path}")
        print("--- End of Dry Run ---")
        return

    auth_result = sign_in(email, password)
    if not auth_result["success"]:
        logger.error("batch_sign_in_failed", email=email, code=auth_result.get("code"))
        return
    session = auth_result["session"]

    files = []
    for file_path in image_files:
        with open(file_path, "rb") as f:
            files.append(
                {
                    "file_name": os.path.basename(file_path),
                    "content_type": mimetypes.guess_type(file_path)[0],
                    "data": f.read(),
                }
            )

    try:
        with user_context(session.user_id, batch_directory=directory):
            results = upload_photos(session, files)
    finally:
        sign_out(session)

    failed = [result for result in results if not result["success"]]
    for result in failed:
        logger.error(
            "batch_file_failed",
            file_name=result["file_name"],
            code=result.get("code"),
            partial_failure=result.get("partial_failure"),
        )

    print(f"\nBatch upload complete. Successful: {len(results) - len(failed)}, Failed: {len(failed)}")
