# media_service.py
"""
Image hosting on Cloudinary via its unsigned upload REST endpoint.
"""
from __future__ import annotations

import logging
import os
import re

import requests

from config import Config

log = logging.getLogger(__name__)

ALLOWED_MIMETYPES = ("image/png", "image/jpeg", "image/webp")
ALLOWED_EXTENSIONS = (".png", ".jpg", ".jpeg", ".webp")


class UploadError(ValueError):
    pass


def _upload_url(cloud_name: str) -> str:
    return f"https://api.cloudinary.com/v1_1/{cloud_name}/image/upload"


def _human_size(n: int) -> str:
    return f"{n / (1024 * 1024):.1f}MB"


def validate_upload(filename: str, mimetype: str | None, size: int, max_bytes: int | None = None) -> None:
    max_bytes = max_bytes or Config.MAX_UPLOAD_BYTES
    mimetype = (mimetype or "").lower()
    ext = os.path.splitext(filename or "")[1].lower()
    if mimetype not in ALLOWED_MIMETYPES and ext not in ALLOWED_EXTENSIONS:
        raise UploadError(f"Invalid file type: {mimetype or ext or filename}. Please use PNG, JPEG, or WEBP.")
    if size > max_bytes:
        raise UploadError(f"File too large: {_human_size(size)}. Max size is {max_bytes // (1024 * 1024)}MB.")


def folder_for_address(address: str | None, root: str | None = None) -> str:
    root = root or Config.CLOUDINARY_FOLDER
    name = re.sub(r"[^a-zA-Z0-9\s-]", "", address or "")
    name = re.sub(r"\s+", "-", name.strip())[:100].lower() or "untitled"
    return f"{root}/properties/{name}"


def _post(files: dict | None, data: dict, cloud_name: str | None, timeout: int) -> str:
    cloud_name = cloud_name or Config.CLOUDINARY_CLOUD_NAME
    if not cloud_name:
        raise UploadError("Cloudinary is not configured")
    try:
        resp = requests.post(_upload_url(cloud_name), files=files, data=data, timeout=timeout)
    except requests.RequestException as e:
        raise UploadError(f"Upload failed: {e}") from e
    if not resp.ok:
        raise UploadError(f"Upload failed ({resp.status_code})")
    url = (resp.json() or {}).get("secure_url")
    if not url:
        raise UploadError("Upload failed: no URL returned")
    return url


def upload_file(stream, filename: str, mimetype: str | None, folder: str | None = None,
                cloud_name: str | None = None, upload_preset: str | None = None, timeout: int = 60) -> str:
    """Upload a file-like object. Returns the hosted https URL."""
    data = {
        "upload_preset": upload_preset or Config.CLOUDINARY_UPLOAD_PRESET,
        "folder": folder or Config.CLOUDINARY_FOLDER,
    }
    files = {"file": (filename, stream, mimetype or "application/octet-stream")}
    return _post(files, data, cloud_name, timeout)


def upload_remote(url: str, folder: str | None = None, cloud_name: str | None = None,
                  upload_preset: str | None = None, timeout: int = 60) -> str:
    """Cloudinary fetches remote URLs itself when `file` is a URL."""
    data = {
        "file": url,
        "upload_preset": upload_preset or Config.CLOUDINARY_UPLOAD_PRESET,
        "folder": folder or Config.CLOUDINARY_FOLDER,
    }
    return _post(None, data, cloud_name, timeout)


def rehost_remote_images(urls: list[str], folder: str | None = None, **kwargs) -> list[str]:
    """
    Upload every remote image. Failed uploads are skipped; if none succeed the
    original URLs come back unchanged.
    """
    hosted = []
    for i, url in enumerate(urls, start=1):
        try:
            hosted.append(upload_remote(url, folder=folder, **kwargs))
        except UploadError as e:
            log.warning("Re-host %s/%s failed for %s: %s", i, len(urls), url, e)
    if not hosted:
        return list(urls)
    log.info("Re-hosted %s/%s images into %s", len(hosted), len(urls), folder)
    return hosted


def rehost_for_address(urls: list[str], address: str | None, **kwargs) -> list[str]:
    return rehost_remote_images(urls, folder=folder_for_address(address), **kwargs)
