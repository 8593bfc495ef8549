"""Metadata bootstrap: locate the trailer, decode it, validate geometry."""

import logging

from exceptions import CorruptDatabaseError, MetadataError
from models.metadata import Metadata
from models.value import MapValue
from storage.buffer import ByteStore
from storage.decoder import Decoder

logger = logging.getLogger(__name__)


def load_metadata(store: ByteStore, decoder: Decoder | None = None) -> Metadata:
    """Read and validate the metadata of a database image.

    Pointers inside the metadata map are relative to the start of the map
    itself, not to the data section.

    Raises:
        MetadataNotFoundError: No trailer marker in the buffer
        MetadataError: Trailer is not a map, or a required key is missing/mistyped
        CorruptDatabaseError: The search tree would overlap the metadata
    """
    decoder = decoder or Decoder(store)
    metadata_start = store.find_metadata_start()

    value, _ = decoder.decode(metadata_start, metadata_start)
    if not isinstance(value, MapValue):
        raise MetadataError(f"Metadata must be a map, got {type(value).__name__}")

    metadata = Metadata.from_map(value, metadata_start=metadata_start)

    if metadata.search_tree_size > metadata_start:
        raise CorruptDatabaseError(
            f"Search tree of {metadata.node_count} nodes ({metadata.search_tree_size} bytes) "
            f"overlaps metadata at offset {metadata_start}"
        )

    logger.debug(
        f"Metadata: type={metadata.database_type} ip_version={metadata.ip_version} "
        f"record_size={metadata.record_size} node_count={metadata.node_count} "
        f"data_section_start={metadata.data_section_start}"
    )
    return metadata
