"""Storage layer: byte store, value decoder, metadata bootstrap and search tree."""

from storage.bootstrap import load_metadata
from storage.buffer import ByteStore
from storage.decoder import Decoder
from storage.search_tree import Failed, Found, NotFound, Partial, SearchResult, SearchTree

__all__ = [
    "ByteStore",
    "Decoder",
    "load_metadata",
    "SearchTree",
    "SearchResult",
    "NotFound",
    "Partial",
    "Found",
    "Failed",
]
