"""
Link Service

This service handles the link lifecycle:
- Validating and normalizing creation input
- Enforcing the owner's plan quota
- Drawing an identifier, rendering the QR image and persisting the link,
  drawing again when the identifier was already issued
- Listing, updating and deleting owned links

Ownership:
Links owned by someone else are reported exactly like missing links
(LinkNotFoundError) so their existence is never revealed.
"""

import logging
import math
from typing import Optional

from qrlinks.core.exceptions import (
    DuplicateIdentifierError,
    GenerationExhaustedError,
    InvalidInputError,
    LinkNotFoundError,
)
from qrlinks.core.plans import OwnerContext, Plan
from qrlinks.core.setting import settings
from qrlinks.core.validators import (
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    normalize_destination_url,
    validate_error_correction_level,
    validate_hex_color,
    validate_optional_text,
    validate_size,
)
from qrlinks.db.models import Link
from qrlinks.db.stores import AccountStore, LinkStore
from qrlinks.services.identifier import IdentifierGenerator
from qrlinks.services.qr_encoder import QREncoder, QROptions
from qrlinks.services.quota import QuotaEnforcer

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "is_active")


def build_short_url(identifier: str, base_url: Optional[str] = None) -> str:
    """Redirect URL encoded in the QR image: <base>/r/<identifier>."""
    return f"{(base_url or settings.BASE_URL).rstrip('/')}/r/{identifier}"


class LinkService:
    """
    Core business logic for creating and managing links.

    Separated from the API layer for testability; every collaborator is
    injected so tests can run against the in-memory stores.
    """

    def __init__(
        self,
        link_store: LinkStore,
        account_store: Optional[AccountStore] = None,
        quota: Optional[QuotaEnforcer] = None,
        generator: Optional[IdentifierGenerator] = None,
        encoder: Optional[QREncoder] = None,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None
    ):
        self.link_store = link_store
        self.account_store = account_store
        self.quota = quota or QuotaEnforcer(link_store)
        self.generator = generator or IdentifierGenerator(settings.IDENTIFIER_LENGTH)
        self.encoder = encoder or QREncoder()
        self.base_url = base_url or settings.BASE_URL
        self.max_retries = settings.IDENTIFIER_MAX_RETRIES if max_retries is None else max_retries
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")

    def short_url(self, link: Link) -> str:
        return build_short_url(link.identifier, self.base_url)

    async def create_link(
        self,
        destination_url: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        size: int = 256,
        error_correction_level: str = "M",
        foreground_color: str = "#000000",
        background_color: str = "#FFFFFF",
        owner: Optional[OwnerContext] = None
    ) -> Link:
        """
        Create a link and its QR image.

        Returns:
            The stored link

        Raises:
            InvalidInputError: If any input fails validation (nothing is stored)
            QuotaExceededError: If the owner is at their plan's link limit
            GenerationExhaustedError: If every drawn identifier was taken
            StoreUnavailableError: If the store cannot be reached
        """
        destination_url = normalize_destination_url(destination_url)
        title = validate_optional_text("title", title, MAX_TITLE_LENGTH)
        description = validate_optional_text("description", description, MAX_DESCRIPTION_LENGTH)
        options = QROptions(
            pixel_size=validate_size(size),
            error_correction_level=validate_error_correction_level(error_correction_level),
            dark_color=validate_hex_color("foreground_color", foreground_color),
            light_color=validate_hex_color("background_color", background_color),
        )

        async with self.quota.reserve(owner):
            link = await self._insert_with_fresh_identifier(
                destination_url=destination_url,
                title=title,
                description=description,
                options=options,
                owner=owner,
            )

        if owner is not None and self.account_store is not None:
            await self.account_store.increment_usage(owner.owner_id, links_created=1)

        logger.info(f"Created link {link.identifier} -> {link.destination_url}")
        return link

    async def _insert_with_fresh_identifier(
        self,
        destination_url: str,
        title: Optional[str],
        description: Optional[str],
        options: QROptions,
        owner: Optional[OwnerContext]
    ) -> Link:
        for attempt in range(1, self.max_retries + 1):
            identifier = self.generator.generate()
            link = Link(
                identifier=identifier,
                destination_url=destination_url,
                owner_id=owner.owner_id if owner else None,
                title=title,
                description=description,
                size=options.pixel_size,
                error_correction_level=options.error_correction_level,
                foreground_color=options.dark_color,
                background_color=options.light_color,
                image_payload=self.encoder.encode(build_short_url(identifier, self.base_url), options),
                is_active=True,
                is_premium=owner is not None and owner.plan != Plan.FREE,
            )
            try:
                return await self.link_store.insert(link)
            except DuplicateIdentifierError:
                logger.warning(
                    f"Identifier collision on attempt {attempt}/{self.max_retries}: {identifier}"
                )

        raise GenerationExhaustedError(self.max_retries)

    async def get_link(self, link_id: int) -> Link:
        link = await self.link_store.get(link_id)
        if link is None:
            raise LinkNotFoundError(link_id)
        return link

    async def get_owned_link(self, link_id: int, owner: OwnerContext) -> Link:
        """
        Raises:
            LinkNotFoundError: If the link is missing or owned by someone else
        """
        link = await self.link_store.get(link_id)
        if link is None or link.owner_id != owner.owner_id:
            raise LinkNotFoundError(link_id)
        return link

    async def list_links(
        self,
        owner: OwnerContext,
        page: int = 1,
        page_size: Optional[int] = None
    ) -> tuple[list[Link], dict]:
        """
        One page of the owner's links, newest first.

        Returns:
            (links, pagination) where pagination has current, total_pages,
            count and total_items
        """
        page = max(page, 1)
        page_size = min(max(page_size or settings.DEFAULT_PAGE_SIZE, 1), settings.MAX_PAGE_SIZE)

        links = await self.link_store.find_by_owner(
            owner.owner_id,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
        total = await self.link_store.count_by_owner(owner.owner_id)

        return links, {
            "current": page,
            "total_pages": math.ceil(total / page_size),
            "count": len(links),
            "total_items": total,
        }

    async def update_link(self, link_id: int, owner: OwnerContext, **changes) -> Link:
        """
        Update title, description and/or is_active of an owned link.

        Only keys present in changes are touched; a None title or
        description clears it.
        """
        unknown = set(changes) - set(UPDATABLE_FIELDS)
        if unknown:
            raise InvalidInputError(sorted(unknown)[0], "cannot be updated")

        fields = {}
        if "title" in changes:
            fields["title"] = validate_optional_text("title", changes["title"], MAX_TITLE_LENGTH)
        if "description" in changes:
            fields["description"] = validate_optional_text(
                "description", changes["description"], MAX_DESCRIPTION_LENGTH
            )
        if "is_active" in changes:
            if not isinstance(changes["is_active"], bool):
                raise InvalidInputError("is_active", "must be a boolean")
            fields["is_active"] = changes["is_active"]

        link = await self.get_owned_link(link_id, owner)
        if not fields:
            return link

        was_active = link.is_active
        updated = await self.link_store.update(link.id, **fields)
        if updated is None:
            raise LinkNotFoundError(link_id)

        if "is_active" in fields and fields["is_active"] != was_active:
            state = "activated" if fields["is_active"] else "deactivated"
            logger.info(f"Link {updated.identifier} {state}")
        return updated

    async def delete_link(self, link_id: int, owner: OwnerContext) -> None:
        """Hard delete an owned link; its identifier is never reissued."""
        link = await self.get_owned_link(link_id, owner)
        if not await self.link_store.delete(link.id):
            raise LinkNotFoundError(link_id)

        if self.account_store is not None:
            await self.account_store.increment_usage(owner.owner_id, links_created=-1)

        logger.info(f"Deleted link {link.identifier}")
