"""Validation utilities for Carmcards applications."""

from __future__ import annotations

from .app import BotApp


def validate_app(app: BotApp) -> list[str]:
    """Return list of validation errors discovered in configured app."""
    errors: list[str] = []
    catalog = app.cards.catalog

    if not len(catalog):
        errors.append("No cards registered in application.")

    set_ids = {card_set.set_id for card_set in catalog.iter_card_sets()}
    for card in catalog.iter_cards():
        if card.number <= 0:
            errors.append(f"Card '{card.card_id}' has non-positive number '{card.number}'.")
        if card.card_set_id is not None and card.card_set_id not in set_ids:
            errors.append(f"Card '{card.card_id}' references unknown card set '{card.card_set_id}'.")
        if card.is_foil and catalog.find_by_number(card.number, False) is None:
            errors.append(f"Foil card #{card.number} has no regular variant.")

    draw = app.config.draw
    if draw.cooldown_seconds < 0:
        errors.append("Draw configuration 'cooldown_seconds' cannot be negative.")
    if not 0.0 <= draw.foil_chance <= 1.0:
        errors.append("Draw configuration 'foil_chance' must be between 0 and 1.")
    if draw.cards_per_page <= 0:
        errors.append("Draw configuration 'cards_per_page' must be positive.")

    ttl = app.config.trade.invite_ttl_seconds
    if ttl is not None and ttl <= 0:
        errors.append("Trade configuration 'invite_ttl_seconds' must be positive when set.")

    return errors


__all__ = ["validate_app"]
