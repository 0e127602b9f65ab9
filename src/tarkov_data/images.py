"""
Quest image store keyed by canonical image URL.

Each quest image is downloaded once and kept with its MIME type, so the
record set can be served without hot-linking the wiki CDN. Scaled
thumbnails never reach this store; extraction already canonicalizes them.
"""

import logging

from tarkov_data.cache import CacheClient
from tarkov_data.models import WikiImage

log = logging.getLogger(__name__)


class ImageStore:
    def __init__(self, cache: CacheClient):
        self._cache = cache

    def has(self, url: str) -> bool:
        return self._cache.has_image(url)

    def get(self, url: str) -> WikiImage | None:
        document = self._cache.get_image(url)
        if document is None:
            return None
        return WikiImage.model_validate(document)

    def put(self, url: str, content: bytes, mime_type: str) -> WikiImage:
        image = WikiImage(url=url, content=content, mime_type=mime_type)
        self._cache.set_image(url, image.model_dump(by_alias=True))
        log.debug("Stored image %s (%s, %d bytes)", url, mime_type, len(content))
        return image

    def count(self) -> int:
        return self._cache.count_images()
