"""Thin wrapper over Django's default storage.

Payment proofs and event images are stored by path; callers keep the returned URL and never read file contents.
"""

import typing as t

import structlog
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

logger = structlog.get_logger(__name__)


def upload_file(content: bytes | t.IO[bytes], path: str) -> str:
    """Store content at path and return its public URL.

    The storage backend may alter the final name to avoid collisions; the URL always points at the saved name.
    """
    data = content if isinstance(content, bytes) else content.read()
    saved_path = default_storage.save(path, ContentFile(data))
    logger.info("file_uploaded", path=saved_path, size=len(data))
    return default_storage.url(saved_path)


def delete_file(path: str) -> None:
    """Delete the file at path. Missing files are ignored."""
    if default_storage.exists(path):
        default_storage.delete(path)
        logger.info("file_deleted", path=path)


def list_files(prefix: str) -> list[str]:
    """List file paths directly under prefix, sorted by name."""
    prefix = prefix.rstrip("/")
    try:
        _, files = default_storage.listdir(prefix)
    except FileNotFoundError:
        return []
    return [f"{prefix}/{name}" for name in sorted(files) if not name.startswith(".")]


def path_from_url(url: str) -> str | None:
    """Reverse a storage URL into its storage path, or None when it is not one of ours."""
    base_url = default_storage.base_url or ""
    if not url or not base_url or not url.startswith(base_url):
        return None
    return url[len(base_url) :]
