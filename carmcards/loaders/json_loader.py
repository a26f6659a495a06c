"""Load cards and card sets from JSON definitions."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Sequence, TYPE_CHECKING

from ..domain.cards import Card, CardSet

if TYPE_CHECKING:
    from ..app import BotApp


@dataclass(slots=True)
class CatalogDefinition:
    cards: Sequence[Card]
    card_sets: Sequence[CardSet]


def load_catalog_from_json(app: "BotApp", path: str | Path) -> CatalogDefinition:
    """Load cards and card sets from a JSON file and register them on the app."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    definition = parse_catalog_dict(data)
    for card_set in definition.card_sets:
        app.cards.catalog.register_card_set(card_set)
    app.cards.catalog.register_cards(definition.cards)
    return definition


def parse_catalog_dict(data: dict[str, Any]) -> CatalogDefinition:
    """Parse a JSON dict (already decoded) into domain objects."""
    errors = validate_catalog_dict(data)
    if errors:
        raise ValueError(_format_errors("Catalog validation failed", errors))
    card_sets = tuple(parse_card_set(entry) for entry in data.get("cardSets", []))
    cards = tuple(parse_card(entry) for entry in data.get("cards", []))
    return CatalogDefinition(cards=cards, card_sets=card_sets)


def parse_card_set(entry: dict[str, Any]) -> CardSet:
    return CardSet(set_id=int(entry["id"]), name=str(entry["name"]))


def parse_card(entry: dict[str, Any]) -> Card:
    card_set_id = entry.get("set")
    return Card(
        card_id=int(entry["id"]),
        number=int(entry["number"]),
        is_foil=bool(entry.get("foil", False)),
        image_url=entry.get("image"),
        card_set_id=int(card_set_id) if card_set_id is not None else None,
    )


def validate_catalog_file(path: str | Path) -> list[str]:
    """Validate catalog JSON file and return a list of errors."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return validate_catalog_dict(data)


def validate_catalog_dict(data: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Catalog must be a JSON object."]

    set_ids: set[int] = set()
    sets_raw = data.get("cardSets", [])
    if not isinstance(sets_raw, list):
        errors.append("'cardSets' must be an array.")
        sets_raw = []
    for idx, entry in enumerate(sets_raw, start=1):
        if not isinstance(entry, dict):
            errors.append(f"Card set #{idx} must be an object.")
            continue
        set_id = entry.get("id")
        if not _is_int(set_id):
            errors.append(f"Card set #{idx} must define integer 'id'.")
            continue
        if set_id in set_ids:
            errors.append(f"Card set id '{set_id}' defined multiple times.")
        set_ids.add(set_id)
        name = entry.get("name")
        if not isinstance(name, str) or not name.strip():
            errors.append(f"Card set '{set_id}' must define non-empty 'name'.")

    cards_raw = data.get("cards")
    if not isinstance(cards_raw, list) or not cards_raw:
        errors.append("Catalog must contain non-empty 'cards' array.")
        return errors

    card_ids: set[int] = set()
    variants: set[tuple[int, bool]] = set()
    for idx, entry in enumerate(cards_raw, start=1):
        if not isinstance(entry, dict):
            errors.append(f"Card #{idx} must be an object.")
            continue
        card_id = entry.get("id")
        if not _is_int(card_id):
            errors.append(f"Card #{idx} must define integer 'id'.")
            continue
        if card_id in card_ids:
            errors.append(f"Card id '{card_id}' defined multiple times.")
        card_ids.add(card_id)

        number = entry.get("number")
        if not _is_int(number) or number <= 0:
            errors.append(f"Card '{card_id}' must define positive integer 'number'.")
            continue

        is_foil = entry.get("foil", False)
        if not isinstance(is_foil, bool):
            errors.append(f"Card '{card_id}' 'foil' must be true or false.")
            continue
        variant = (number, is_foil)
        if variant in variants:
            kind = "foil" if is_foil else "regular"
            errors.append(f"Card number {number} has more than one {kind} variant.")
        variants.add(variant)

        image = entry.get("image")
        if image is not None and (not isinstance(image, str) or not image.strip()):
            errors.append(f"Card '{card_id}' image must be a non-empty string.")

        card_set = entry.get("set")
        if card_set is not None:
            if not _is_int(card_set):
                errors.append(f"Card '{card_id}' 'set' must be an integer.")
            elif card_set not in set_ids:
                errors.append(f"Card '{card_id}' references unknown card set '{card_set}'.")

    return errors


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _format_errors(prefix: str, errors: Iterable[str]) -> str:
    formatted = "\n".join(f"- {err}" for err in errors)
    return f"{prefix}:\n{formatted}"
