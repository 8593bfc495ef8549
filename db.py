import ipaddress
import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import Self

from exceptions import InvalidAddressError, InvalidDatabaseTypeError, SearchError
from models.config import ReaderOptions
from models.metadata import Metadata
from models.value import MapValue, StringValue, Value
from storage.bootstrap import load_metadata
from storage.buffer import ByteStore
from storage.decoder import Decoder
from storage.search_tree import Failed, Found, NotFound, Partial, SearchResult, SearchTree

logger = logging.getLogger(__name__)

IPv4_BITS = 32
IPv6_BITS = 128

# Leading zero bits of an IPv4 address embedded in an IPv6 tree (::a.b.c.d)
IPv4_SUBTREE_DEPTH = 96

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network


class MMDB:
    """An opened MaxMind DB file, held entirely in memory.

    Everything needed for a lookup is computed when the database is opened:
    the metadata, the search tree geometry and the node where IPv4 addresses
    start. A handle is never mutated afterwards, so lookups from several
    threads need no locking.
    """

    def __init__(self, data: bytes | ByteStore, options: ReaderOptions | None = None):
        self.options = options or ReaderOptions()
        self._store = data if isinstance(data, ByteStore) else ByteStore(data)
        self._decoder = Decoder(self._store, max_depth=self.options.max_decode_depth)
        self._metadata = load_metadata(self._store, self._decoder)

        expected_type = self.options.database_type
        if expected_type is not None and self._metadata.database_type != expected_type:
            raise InvalidDatabaseTypeError(self._metadata.database_type)

        self._tree = SearchTree(self._store, self._metadata, self._decoder)
        self._ipv4_start = self._find_ipv4_start()

        logger.info(
            f"Opened {self._metadata.database_type} database: {len(self._store)} bytes, "
            f"{self._metadata.node_count} nodes, IPv{self._metadata.ip_version}"
        )

    @classmethod
    def from_path(cls, path: Path | str, options: ReaderOptions | None = None) -> Self:
        """Load a database file into memory and open it."""
        return cls(ByteStore.from_path(path), options)

    def _find_ipv4_start(self) -> int:
        """Record reached after the 96 zero bits that prefix IPv4 in an IPv6 tree.

        For IPv4 databases this is the root. The result may already be a
        terminal record when ::/96 (or a shorter prefix) has no subtree.
        """
        if self._metadata.ip_version == 4:
            return 0
        record = self._tree.descend(0, 0, 64)
        if record < self._metadata.node_count:
            record = self._tree.descend(record, 0, IPv4_SUBTREE_DEPTH - 64)
        logger.debug(f"IPv4 start record: {record}")
        return record

    @property
    def tree(self) -> SearchTree:
        if self._tree is None:
            raise RuntimeError("Database is closed")
        return self._tree

    @property
    def metadata(self) -> Metadata:
        return self._metadata

    @property
    def database_type(self) -> str:
        return self._metadata.database_type

    @property
    def ipv4_start_node(self) -> int:
        """Node (or terminal record) IPv4 lookups start from."""
        return self._ipv4_start

    def lookup(self, value: int, bits: int, start_node: int = 0) -> SearchResult:
        """Search ``bits`` address bits, left-aligned at bit 63 of ``value``."""
        return self.tree.search(value, bits, start_node=start_node)

    def lookup_words(self, words: Sequence[int], bits: int, word_bits: int = 32) -> SearchResult:
        """Search an address given as fixed-width words, most significant first."""
        return self.tree.search_words(words, bits, word_bits=word_bits)

    def lookup_address(self, address: str | IPAddress) -> SearchResult:
        """Search a textual or ipaddress IPv4/IPv6 address.

        Raises InvalidAddressError for unparsable input, and for IPv6
        addresses against an IPv4-only database.
        """
        ip = self._parse_address(address)
        tree = self.tree

        if ip.version == 4:
            if self._ipv4_start >= self._metadata.node_count:
                return tree.resolve(self._ipv4_start)
            result = tree.search(int(ip) << IPv4_BITS, IPv4_BITS, start_node=self._ipv4_start)
            width = IPv4_BITS
        else:
            if self._metadata.ip_version == 4:
                raise InvalidAddressError(
                    f"Error looking up {ip}. You attempted to look up an IPv6 address in an IPv4-only database"
                )
            packed = int(ip)
            words = [(packed >> shift) & 0xFFFFFFFF for shift in (96, 64, 32, 0)]
            result = tree.search_words(words, IPv6_BITS)
            width = IPv6_BITS

        # A full-width walk that ends on a node means the tree is deeper than an address
        if isinstance(result, Partial):
            return Failed(f"Search tree deeper than {width} bits at node {result.node}")
        return result

    @staticmethod
    def _parse_address(address: str | IPAddress) -> IPAddress:
        if isinstance(address, (ipaddress.IPv4Address, ipaddress.IPv6Address)):
            return address
        try:
            return ipaddress.ip_address(address)
        except ValueError as e:
            raise InvalidAddressError(f"{address!r} is not a valid IP address") from e

    def get(self, address: str | IPAddress) -> Value | None:
        """Record for an address, or None when the database has no data for it.

        Raises SearchError if the lookup failed (corrupt data or tree).
        """
        result = self.lookup_address(address)
        match result:
            case Found(value=value):
                return value
            case NotFound():
                return None
            case Failed(reason=reason):
                logger.warning(f"Lookup of {address} failed: {reason}")
                raise SearchError(reason)
        raise SearchError(f"Unexpected search result for {address}: {result}")

    def enumerate(self, visit: Callable[[list[int], int], None]) -> None:
        """Call ``visit(prefix_words, prefix_length)`` for every network with data."""
        self.tree.enumerate(visit)

    def networks(self) -> Iterator[tuple[IPNetwork, Value]]:
        """Yield (network, record) for every network with data, in address order."""
        tree = self.tree
        width = self._metadata.tree_depth
        network_type = ipaddress.IPv4Network if self._metadata.ip_version == 4 else ipaddress.IPv6Network

        for path, length, record in tree.iter_records():
            result = tree.resolve(record)
            if isinstance(result, Failed):
                raise SearchError(result.reason)
            yield network_type((path << (width - length), length)), result.value

    def close(self) -> None:
        """Release the database buffer."""
        self._tree = None
        self._decoder = None
        self._store = None

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


class GeoLite2CountryDatabase(MMDB):
    """A GeoLite2-Country database with an ISO country code shortcut.

    Meant to be created once at startup and swapped for a new instance when
    a fresh database file is published.
    """

    DATABASE_TYPE = "GeoLite2-Country"

    def __init__(self, data: bytes | ByteStore, options: ReaderOptions | None = None):
        options = (options or ReaderOptions()).model_copy(update={"database_type": self.DATABASE_TYPE})
        super().__init__(data, options)

    def country_code(self, address: str | IPAddress) -> str | None:
        """Two-letter ISO code of the country for an address, or None.

        Lookup failures and records without country.iso_code both give None.
        """
        try:
            record = self.get(address)
        except SearchError:
            return None
        return record_country_code(record)


def record_country_code(record: Value | None) -> str | None:
    """``country.iso_code`` of a lookup record, or None if the record has no such string."""
    if not isinstance(record, MapValue):
        return None
    country = record.get("country")
    if not isinstance(country, MapValue):
        return None
    code = country.get("iso_code")
    return code.value if isinstance(code, StringValue) else None


def open_database(source: bytes | Path | str, options: ReaderOptions | None = None) -> MMDB:
    """Open a database from raw bytes or from a file path."""
    if isinstance(source, (bytes, bytearray, memoryview)):
        return MMDB(source, options)
    return MMDB.from_path(source, options)
