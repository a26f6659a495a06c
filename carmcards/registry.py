"""Chainable registration facade for the card catalog."""

from __future__ import annotations

from .domain.cards import Card, CardCatalog, CardSet


class CardRegistry:
    """Facade around CardCatalog with chainable API."""

    def __init__(self) -> None:
        self.catalog = CardCatalog()

    def card(self, card: Card) -> "CardRegistry":
        self.catalog.register_card(card)
        return self

    def card_set(self, card_set: CardSet) -> "CardRegistry":
        self.catalog.register_card_set(card_set)
        return self

    def foil_pair(
        self,
        number: int,
        *,
        card_id: int,
        foil_card_id: int,
        image_url: str | None = None,
        foil_image_url: str | None = None,
        card_set_id: int | None = None,
    ) -> "CardRegistry":
        """Register the regular and foil variants of one card number."""
        self.catalog.register_card(
            Card(card_id=card_id, number=number, image_url=image_url, card_set_id=card_set_id)
        )
        self.catalog.register_card(
            Card(
                card_id=foil_card_id,
                number=number,
                is_foil=True,
                image_url=foil_image_url or image_url,
                card_set_id=card_set_id,
            )
        )
        return self


__all__ = ["CardRegistry"]
