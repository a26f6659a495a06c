"""Exceptions raised by Carmcards domain services."""


class CarmcardsError(RuntimeError):
    """Base class for domain exceptions."""


class UnknownCollectorError(CarmcardsError):
    """Raised when a platform user has not started a collection."""

    def __init__(self, user_id: int | None = None, *, username: str | None = None) -> None:
        who = f"@{username}" if username else f"user {user_id}"
        super().__init__(f"{who} is not a collector")
        self.user_id = user_id
        self.username = username


class UnknownCardError(CarmcardsError):
    """Raised when no catalog card matches a number and foil flag."""

    def __init__(self, number: int, is_foil: bool = False) -> None:
        variant = "foil card" if is_foil else "card"
        super().__init__(f"No {variant} #{number} in the catalog")
        self.number = number
        self.is_foil = is_foil


class OwnershipError(CarmcardsError):
    """Raised when a collector does not hold the card an action needs."""

    def __init__(self, message: str, *, user_id: int | None = None) -> None:
        super().__init__(message)
        self.user_id = user_id


class InvalidStateError(CarmcardsError):
    """Raised when an action does not match the current trade state."""


class StoreError(CarmcardsError):
    """Raised when a storage backend fails."""


class CooldownActive(CarmcardsError):
    """Raised when collector tries to draw before cooldown expires."""

    def __init__(self, seconds_remaining: int) -> None:
        super().__init__(f"Cooldown active for {seconds_remaining} seconds")
        self.seconds_remaining = seconds_remaining


class NoCardsAvailable(CarmcardsError):
    """Raised when the catalog has nothing to draw."""


class EmptyCollection(CarmcardsError):
    """Raised when a collector owns no cards."""
