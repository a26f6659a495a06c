"""Card domain models and the catalog."""

from __future__ import annotations

from dataclasses import dataclass
from random import Random
from typing import Iterable


@dataclass(slots=True, frozen=True)
class CardSet:
    set_id: int
    name: str


@dataclass(slots=True, frozen=True)
class Card:
    """Definition of a collectible card.

    Foil and regular variants of the same card share ``number`` and differ in
    ``is_foil`` and ``card_id``.
    """

    card_id: int
    number: int
    is_foil: bool = False
    image_url: str | None = None
    card_set_id: int | None = None

    @property
    def label(self) -> str:
        return f"{'foil ' if self.is_foil else ''}card #{self.number}"


class CardCatalog:
    """Read-only registry of cards and card sets."""

    def __init__(self) -> None:
        self._cards: dict[int, Card] = {}
        self._variants: dict[tuple[int, bool], Card] = {}
        self._sets: dict[int, CardSet] = {}

    def register_card(self, card: Card) -> None:
        if card.card_id in self._cards:
            raise ValueError(f"Card {card.card_id} already registered")
        variant = (card.number, card.is_foil)
        if variant in self._variants:
            raise ValueError(f"Card {card.label} already registered")
        self._cards[card.card_id] = card
        self._variants[variant] = card

    def register_cards(self, cards: Iterable[Card]) -> None:
        for card in cards:
            self.register_card(card)

    def register_card_set(self, card_set: CardSet) -> None:
        if card_set.set_id in self._sets:
            raise ValueError(f"Card set {card_set.set_id} already registered")
        self._sets[card_set.set_id] = card_set

    def get_card(self, card_id: int) -> Card:
        try:
            return self._cards[card_id]
        except KeyError as exc:
            raise KeyError(f"Card {card_id} not found") from exc

    def find_card(self, card_id: int) -> Card | None:
        return self._cards.get(card_id)

    def find_by_number(self, number: int, is_foil: bool = False) -> Card | None:
        return self._variants.get((number, bool(is_foil)))

    def variants_of(self, number: int) -> list[Card]:
        return [
            card
            for card in (self._variants.get((number, False)), self._variants.get((number, True)))
            if card is not None
        ]

    def get_card_set(self, set_id: int | None) -> CardSet | None:
        if set_id is None:
            return None
        return self._sets.get(set_id)

    def sample(self, rng: Random, *, is_foil: bool) -> Card | None:
        pool = [card for card in self._cards.values() if card.is_foil == is_foil]
        if not pool:
            pool = list(self._cards.values())
        if not pool:
            return None
        return rng.choice(pool)

    def iter_cards(self) -> Iterable[Card]:
        return self._cards.values()

    def iter_card_sets(self) -> Iterable[CardSet]:
        return self._sets.values()

    def __len__(self) -> int:
        return len(self._cards)
