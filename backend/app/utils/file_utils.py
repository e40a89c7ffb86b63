"""
File helpers for resume uploads: digests, storage paths, sizes
"""
import hashlib
import os
import time
from typing import Iterable, Optional


def compute_digest(content: bytes) -> str:
    """SHA-256 hex digest used to detect byte-identical re-uploads"""
    return hashlib.sha256(content).hexdigest()


def get_file_extension(filename: str) -> str:
    """
    Safely extract file extension from filename

    Returns:
        Lower-cased extension including the dot, or empty string
    """
    if not filename:
        return ""
    _, ext = os.path.splitext(filename.lower())
    return ext


def is_allowed_extension(filename: str, allowed: Iterable[str]) -> bool:
    return get_file_extension(filename) in {a.lower() for a in allowed}


def build_storage_path(user_id: str, digest: str, filename: str, now_ms: Optional[int] = None) -> str:
    """
    Machine-generated object key: ``{user_id}/{epoch_ms}_{digest[:16]}.{ext}``.

    The user-supplied filename only contributes its extension; non-ASCII
    names are rejected as storage keys.
    """
    now_ms = now_ms if now_ms is not None else int(time.time() * 1000)
    ext = get_file_extension(filename).lstrip(".")
    if not ext.isascii() or not ext.isalnum():
        ext = ""
    name = f"{now_ms}_{digest[:16]}"
    if ext:
        name = f"{name}.{ext}"
    return f"{user_id}/{name}"


def format_file_size(size_bytes: Optional[int]) -> str:
    """
    Format file size in human-readable format

    Args:
        size_bytes: File size in bytes

    Returns:
        Formatted file size string, e.g. "1.5 KB"
    """
    if not size_bytes or size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    index = 0
    while size_bytes >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    value = round(size_bytes / (1024 ** index), 2)
    return f"{value:g} {units[index]}"
