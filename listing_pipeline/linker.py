# listing_pipeline/linker.py
"""Link photos to the listing generated from them, and undo that on deletion."""
from __future__ import annotations

from .config import LINK_RETRY_TRIES
from .errors import LinkError, StoreError
from .stores import PhotoStore
from .utils import async_retry, logger


class PhotoLinker:
    """Owner-scoped linking on top of a `PhotoStore`.

    Linking is retried; if every attempt fails a `LinkError` is raised and the
    already-created listing is left in place so a later retry can update it.
    """

    def __init__(self, photos: PhotoStore, tries: int = LINK_RETRY_TRIES, delay: float = 0.5):
        self.photos = photos
        self.tries = max(1, tries)
        self.delay = delay

    async def link_photos(self, identifier: str, item_id: str) -> int:
        link = async_retry(StoreError, tries=self.tries, delay=self.delay)(self.photos.link)
        try:
            count = await link(identifier, item_id)
        except StoreError as e:
            raise LinkError(f"could not link photos of {identifier} to {item_id}: {e}") from e
        logger.info("Linked %d photo(s) of %s to listing %s", count, identifier, item_id)
        return count

    async def reset_photos(self, identifier: str) -> int:
        count = await self.photos.reset(identifier)
        logger.info("Reset %d photo(s) of %s to uploaded", count, identifier)
        return count
