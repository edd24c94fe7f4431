"""Wallet-linked tier entitlements and marketplace ledger, with a Discord front end."""

__version__ = "0.1.0"
