"""
Signed URL resolution for stored resume files
"""
import re
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from app.core.exceptions import StorageError
from app.utils.logger import get_logger

logger = get_logger(__name__)

PUBLIC_OBJECT_PATTERN = re.compile(r"/storage/v1/object/public/([^/]+)/(.+)")


def extract_bucket_path(url: str) -> Optional[Tuple[str, str]]:
    """Split a public storage URL into (bucket, path)"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return None
    match = PUBLIC_OBJECT_PATTERN.search(parsed.path or "")
    if not match:
        return None
    return match.group(1), match.group(2)


class StorageResolver:
    """Turns an oss_raw_path (bare path or public URL) into a previewable URL"""

    def __init__(self, gateway, buckets: List[str], expires_in: int = 3600):
        self.gateway = gateway
        self.buckets = list(buckets)
        self.expires_in = expires_in

    async def resolve(self, path_or_url: Optional[str]) -> Optional[str]:
        if not path_or_url:
            logger.warning("storage_path_empty")
            return None

        path = path_or_url
        buckets = self.buckets
        detected = extract_bucket_path(path_or_url)
        if detected:
            bucket, path = detected
            buckets = [bucket] + [b for b in self.buckets if b != bucket]
        elif re.match(r"^https?://", path_or_url, re.IGNORECASE):
            # Foreign URL: usable as-is for preview
            return path_or_url

        for bucket in buckets:
            try:
                url = await self.gateway.create_signed_url(bucket, path, self.expires_in)
            except StorageError as e:
                logger.debug("signed_url_bucket_miss", bucket=bucket, path=path, error=e.message)
                continue
            if url:
                logger.debug("signed_url_created", bucket=bucket, path=path)
                return url

        logger.warning("signed_url_not_found", path=path, buckets=buckets)
        return None
