"""
TrackRise - bookkeeping core for small businesses.

Offline-first transaction ledger with voice and receipt capture and
opportunistic sync to a remote store.
"""

__version__ = "0.1.0"
