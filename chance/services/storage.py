import logging
import os
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)

UPLOADTHING_API_URL = os.getenv("UPLOADTHING_API_URL", "https://api.uploadthing.com")
REQUEST_TIMEOUT_SECONDS = 10


def file_key_from_url(url: str | None) -> str | None:
    """UploadThing serves files at .../f/<key>; anything else has no key."""
    if not url:
        return None
    path = urlparse(url).path
    if "/f/" not in path:
        return None
    key = path.split("/f/", 1)[1].strip("/")
    return key or None


def delete_media(url: str) -> bool:
    """
    Delete an uploaded object. Raises on transport or API failure;
    returns False when there is nothing we can delete.
    """
    key = file_key_from_url(url)
    if key is None:
        logger.warning("No storage key in media url %s", url)
        return False

    api_key = os.getenv("UPLOADTHING_SECRET")
    if not api_key:
        logger.warning("UPLOADTHING_SECRET is not set; leaving %s in storage", key)
        return False

    response = requests.post(
        f"{UPLOADTHING_API_URL}/v6/deleteFiles",
        json={"fileKeys": [key]},
        headers={"X-Uploadthing-Api-Key": api_key},
        timeout=REQUEST_TIMEOUT_SECONDS,
    )
    response.raise_for_status()
    logger.info("Deleted media object %s", key)
    return True
