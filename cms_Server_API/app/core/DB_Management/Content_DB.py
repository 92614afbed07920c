# Content_DB.py
# Description: Entity schemas for the site's editable content, and the container that wires
#              one DocumentStore per entity onto a shared base directory and sync queue.
#
# Imports
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Optional
#
# 3rd-party Libraries
from loguru import logger
#
# Local Imports
from cms_Server_API.app.core.DB_Management.Document_Store import (
    CollectionFile, DocumentStore, EntitySchema, FieldSpec, utc_now
)
from cms_Server_API.app.core.DB_Management.History_Ledger import PackageHistoryLedger, revive_history_entry
from cms_Server_API.app.core.Sync.queue import SyncQueue
#
########################################################################################################################
#
# Schemas:

_POSITION_FIELDS = (FieldSpec("offsetX"), FieldSpec("offsetY"))

SITE_CONTENT = EntitySchema(
    name="site content",
    filename="site-content.json",
    key_field="key",
    fields=(
        FieldSpec("key", required=True),
        FieldSpec("value", required=True),
        FieldSpec("category", required=True),
        FieldSpec("label"),
    ) + _POSITION_FIELDS,
)

SITE_IMAGES = EntitySchema(
    name="site image",
    filename="site-images.json",
    key_field="key",
    sortable=True,
    fields=(
        FieldSpec("key", required=True),
        FieldSpec("url", required=True),
        FieldSpec("alt"),
        FieldSpec("category", required=True),
        FieldSpec("sortOrder", default=0),
    ) + _POSITION_FIELDS,
)

PORTFOLIO_IMAGES = EntitySchema(
    name="portfolio image",
    filename="portfolio-images.json",
    sortable=True,
    fields=(
        FieldSpec("title", required=True),
        FieldSpec("url", required=True),
        FieldSpec("category", required=True),
        FieldSpec("visible", default=True),
        FieldSpec("sortOrder", default=0),
    ) + _POSITION_FIELDS,
)

SITE_SECTIONS = EntitySchema(
    name="site section",
    filename="site-sections.json",
    key_field="key",
    sortable=True,
    fields=(
        FieldSpec("key", required=True),
        FieldSpec("name", required=True),
        FieldSpec("visible", required=True),
        FieldSpec("sortOrder", default=0),
        FieldSpec("page", required=True),
    ),
)

PACKAGES = EntitySchema(
    name="package",
    filename="packages.json",
    sortable=True,
    fields=(
        FieldSpec("name", required=True),
        FieldSpec("price", required=True),
        FieldSpec("description"),
        FieldSpec("features"),
        FieldSpec("category", required=True),
        FieldSpec("badge"),
        FieldSpec("priceNote"),
        FieldSpec("emoji"),
        FieldSpec("featured", default=False),
        FieldSpec("popular", default=False),
        FieldSpec("visible", default=True),
        FieldSpec("sortOrder", default=0),
    ) + _POSITION_FIELDS,
)

TESTIMONIALS = EntitySchema(
    name="testimonial",
    filename="testimonials.json",
    sortable=True,
    fields=(
        FieldSpec("name", required=True),
        FieldSpec("quote", required=True),
        FieldSpec("visible", default=True),
        FieldSpec("sortOrder", default=0),
    ) + _POSITION_FIELDS,
)

CONTACT_INFO = EntitySchema(
    name="contact info",
    filename="contact-info.json",
    key_field="key",
    fields=(
        FieldSpec("key", required=True),
        FieldSpec("value", required=True),
        FieldSpec("label"),
    ),
)

SHARE_LINKS = EntitySchema(
    name="share link",
    filename="share-links.json",
    key_field="code",
    fields=(
        FieldSpec("code", required=True),
        FieldSpec("note"),
        FieldSpec("expiresAt"),
        FieldSpec("revokedAt"),
    ),
)

PACKAGES_HISTORY_FILENAME = "packages-history.json"

# Public entity name -> schema. The share-link collection is reached through the LinkIssuer only.
CONTENT_SCHEMAS: Dict[str, EntitySchema] = {
    "site-content": SITE_CONTENT,
    "site-images": SITE_IMAGES,
    "portfolio": PORTFOLIO_IMAGES,
    "sections": SITE_SECTIONS,
    "packages": PACKAGES,
    "testimonials": TESTIMONIALS,
    "contact-info": CONTACT_INFO,
}


########################################################################################################################
#
# Container:

class ContentDatabase:
    """
    Owns every collection of the site CMS for one base directory.

    Created once at application start-up and torn down at shutdown (`aclose()` drains
    the sync queue). Tests build their own instance on a temporary directory.
    """

    def __init__(self, base_dir: Path, sync_queue: Optional[SyncQueue] = None,
                 share_links_file: Optional[Path] = None,
                 share_links_legacy_file: Optional[Path] = None,
                 history_max_entries: int = 0,
                 clock: Callable[[], datetime] = utc_now):
        self.base_dir = Path(base_dir)
        self.sync_queue = sync_queue

        def collection(filename: str, **kwargs) -> CollectionFile:
            return CollectionFile(self.base_dir / filename, sync_queue=sync_queue, **kwargs)

        self.package_history = PackageHistoryLedger(
            collection(PACKAGES_HISTORY_FILENAME, reviver=revive_history_entry),
            max_entries=history_max_entries,
            clock=clock,
        )
        self.stores: Dict[str, DocumentStore] = {}
        for entity, schema in CONTENT_SCHEMAS.items():
            ledger = self.package_history if schema is PACKAGES else None
            self.stores[entity] = DocumentStore(schema, collection(schema.filename), ledger=ledger, clock=clock)

        self.share_links = DocumentStore(
            SHARE_LINKS,
            CollectionFile(share_links_file or self.base_dir / SHARE_LINKS.filename,
                           sync_queue=sync_queue, legacy_path=share_links_legacy_file),
            clock=clock,
        )
        logger.info(f"ContentDatabase initialized at {self.base_dir}")

    def store(self, entity: str) -> DocumentStore:
        try:
            return self.stores[entity]
        except KeyError:
            raise KeyError(f"Unknown content entity '{entity}'") from None

    @property
    def packages(self) -> DocumentStore:
        return self.stores["packages"]

    async def aclose(self) -> None:
        if self.sync_queue is not None:
            await self.sync_queue.aclose()

#
# End of Content_DB.py
########################################################################################################################
