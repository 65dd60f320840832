import os
import re
import logging
import mimetypes
from urllib.parse import urlparse, unquote

import boto3
from botocore.exceptions import BotoCoreError, ClientError
import requests
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("storage")

R2_SETTINGS = ("R2_BUCKET", "R2_ACCESS_KEY", "R2_SECRET_KEY", "R2_ENDPOINT", "R2_PUBLIC_URL")


class StorageError(Exception):
    pass


def r2_configured() -> bool:
    return all(os.getenv(name) for name in R2_SETTINGS)


def _object_key(public_url: str, content_type: str, key_prefix: str) -> str:
    filename = unquote(os.path.basename(urlparse(public_url).path))
    root, ext = os.path.splitext(filename)
    if not ext:
        ext = mimetypes.guess_extension(content_type) or ".bin"
    root = re.sub(r"[^A-Za-z0-9._-]+", "-", root).strip("-._") or "document"
    return f"{key_prefix}{root}{ext}"


def mirror_to_r2(public_url: str, key_prefix: str = "documents/") -> str:
    """
    Copy a publicly reachable file into the R2 bucket and return its public URL.
    Raises StorageError when R2 is not configured or the download/upload fails.
    """
    if not r2_configured():
        raise StorageError("Missing R2 configuration in environment variables.")

    try:
        resp = requests.get(public_url, stream=True, timeout=30)
    except requests.RequestException as e:
        raise StorageError(f"Failed to download file from {public_url}: {e}")
    if resp.status_code != 200:
        raise StorageError(f"Failed to download file from {public_url} (HTTP {resp.status_code})")

    content_type = resp.headers.get("Content-Type", "application/octet-stream").split(";")[0]
    key = _object_key(public_url, content_type, key_prefix)

    s3 = boto3.session.Session().client(
        service_name="s3",
        endpoint_url=os.getenv("R2_ENDPOINT"),
        aws_access_key_id=os.getenv("R2_ACCESS_KEY"),
        aws_secret_access_key=os.getenv("R2_SECRET_KEY"),
    )
    try:
        s3.put_object(Bucket=os.getenv("R2_BUCKET"), Key=key, Body=resp.content, ContentType=content_type)
    except (BotoCoreError, ClientError) as e:
        raise StorageError(f"R2 upload failed for {key}: {e}")

    logger.info("Mirrored %s to R2 key %s", public_url, key)
    return f"{os.getenv('R2_PUBLIC_URL').rstrip('/')}/{key}"
