"""Engine components: disguise → fetch → extract → dedup → persist."""

from .dataset import DatasetStore
from .dedup import DedupIndex, dedup_key, record_key
from .extractor import ExtractionResult, ListingExtractor
from .fetcher import FetchResponse, Fetcher, PlaywrightRenderer
from .records import BusinessRecord, ScrapeError

__all__ = [
    "BusinessRecord",
    "DatasetStore",
    "DedupIndex",
    "ExtractionResult",
    "FetchResponse",
    "Fetcher",
    "ListingExtractor",
    "PlaywrightRenderer",
    "ScrapeError",
    "dedup_key",
    "record_key",
]
