"""Chat command grammar.

Turns free chat text into one of the tagged command variants below. Services
never see raw text; they receive these values from the dispatcher.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union


@dataclass(slots=True, frozen=True)
class DrawCommand:
    pass


@dataclass(slots=True, frozen=True)
class CardCommand:
    number: int


@dataclass(slots=True, frozen=True)
class CollectionCommand:
    page: int = 1


@dataclass(slots=True, frozen=True)
class TradeCommand:
    target_user_id: int | None = None
    target_username: str | None = None
    card_number: int | None = None
    is_foil: bool = False

    @property
    def has_target(self) -> bool:
        return self.target_user_id is not None or self.target_username is not None


@dataclass(slots=True, frozen=True)
class CancelTradeCommand:
    target_user_id: int | None = None
    target_username: str | None = None

    @property
    def has_target(self) -> bool:
        return self.target_user_id is not None or self.target_username is not None


@dataclass(slots=True, frozen=True)
class HelpCommand:
    pass


Command = Union[
    DrawCommand, CardCommand, CollectionCommand, TradeCommand, CancelTradeCommand, HelpCommand
]

_USERNAME = r"@(?P<username>[A-Za-z0-9_]+)"

_DRAW = re.compile(r"^draw$", re.IGNORECASE)
_CARD = re.compile(r"^cards?\s*#?(?P<number>\d+)$", re.IGNORECASE)
_COLLECTION = re.compile(r"^collections?\s*#?(?P<page>\d*)$", re.IGNORECASE)
_HELP = re.compile(r"^(?:help|start)?$", re.IGNORECASE)
_TRADE = re.compile(
    rf"^trade(?:\s+{_USERNAME})?(?:\s+#?(?P<number>\d+))?(?:\s*(?P<foil>foil))?$",
    re.IGNORECASE,
)
_CANCEL_TRADE = re.compile(rf"^cancel\s*trade(?:\s+{_USERNAME})?$", re.IGNORECASE)

_COMMAND_WORD = re.compile(r"^/?(?P<word>[A-Za-z]+)(?:@[A-Za-z0-9_]+)?")
_TRAILING_PUNCTUATION = re.compile(r"[.!?]+$")


def normalize_command_text(text: str | None, *, bot_username: str | None = None) -> str:
    """Strip the bot mention, slash, ``@botname`` suffix and trailing punctuation."""
    content = (text or "").strip()
    if bot_username:
        mention = f"@{bot_username.lstrip('@')}"
        if content.lower().startswith(mention.lower()):
            content = content[len(mention):].strip()
    content = _COMMAND_WORD.sub(lambda match: match.group("word"), content, count=1)
    content = _TRAILING_PUNCTUATION.sub("", content)
    return " ".join(content.split())


def parse_command(
    text: str | None,
    *,
    bot_username: str | None = None,
    target_user_id: int | None = None,
) -> Command | None:
    """Parse chat text into a command, or None when it is not one.

    ``target_user_id`` carries a trade partner identified outside the text,
    such as a Telegram text mention or the author of a replied-to message.
    """
    content = normalize_command_text(text, bot_username=bot_username)

    if _HELP.match(content):
        return HelpCommand()
    if _DRAW.match(content):
        return DrawCommand()
    if match := _CARD.match(content):
        return CardCommand(number=int(match.group("number")))
    if match := _COLLECTION.match(content):
        page = match.group("page")
        return CollectionCommand(page=int(page) if page else 1)
    if match := _TRADE.match(content):
        number = match.group("number")
        return TradeCommand(
            target_user_id=target_user_id,
            target_username=match.group("username"),
            card_number=int(number) if number else None,
            is_foil=match.group("foil") is not None,
        )
    if match := _CANCEL_TRADE.match(content):
        return CancelTradeCommand(
            target_user_id=target_user_id, target_username=match.group("username")
        )
    return None


__all__ = [
    "CancelTradeCommand",
    "CardCommand",
    "CollectionCommand",
    "Command",
    "DrawCommand",
    "HelpCommand",
    "TradeCommand",
    "normalize_command_text",
    "parse_command",
]
