from __future__ import annotations
import re

# base58 alphabet (no 0, O, I, l), 32-44 chars
SOLANA_ADDRESS_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_solana_address(value: str) -> bool:
    return bool(value) and SOLANA_ADDRESS_RE.fullmatch(value.strip()) is not None
