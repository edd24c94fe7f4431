from __future__ import annotations


class X402Error(Exception):
    """Base class for errors raised by the x402bot core."""


class StoreUnavailableError(X402Error):
    """The store could not be opened or its schema created. Not recoverable."""


class IdentityConflictError(X402Error):
    """A wallet or external id is already linked to a different counterpart."""

    def __init__(self, wallet: str, external_id: str, linked_wallet: str | None = None,
                 linked_external_id: str | None = None):
        self.wallet = wallet
        self.external_id = external_id
        self.linked_wallet = linked_wallet
        self.linked_external_id = linked_external_id
        parts = []
        if linked_external_id is not None:
            parts.append(f"wallet {wallet} is linked to {linked_external_id}")
        if linked_wallet is not None:
            parts.append(f"{external_id} is linked to wallet {linked_wallet}")
        super().__init__("; ".join(parts) or f"conflicting link for {wallet} / {external_id}")


class InvalidAmountError(X402Error, ValueError):
    """Negative or non-integer amount, price, stock or duration."""


def require_non_negative(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmountError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidAmountError(f"{name} must be >= 0, got {value}")
    return value
