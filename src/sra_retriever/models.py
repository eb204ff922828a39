"""Normalized SRA records and search pages — the contract between the client and everything else."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

LAYOUT_PAIRED = "PAIRED"
LAYOUT_SINGLE = "SINGLE"

# Keys under which a record survives a round trip through document properties
PROP_ACCESSION = "sra.accession"
PROP_ORGANISM = "sra.organism"
PROP_PLATFORM = "sra.platform"
PROP_LIBRARY_STRATEGY = "sra.libraryStrategy"
PROP_LIBRARY_LAYOUT = "sra.libraryLayout"
PROP_TITLE = "sra.title"
PROP_STUDY = "sra.study"
PROP_BIOPROJECT = "sra.bioproject"
PROP_BIOSAMPLE = "sra.biosample"
PROP_TOTAL_SPOTS = "sra.totalSpots"
PROP_TOTAL_BASES = "sra.totalBases"

_TEXT_PROPERTIES = {
    PROP_ACCESSION: "accession",
    PROP_ORGANISM: "organism",
    PROP_PLATFORM: "platform",
    PROP_LIBRARY_STRATEGY: "library_strategy",
    PROP_LIBRARY_LAYOUT: "library_layout",
    PROP_TITLE: "title",
    PROP_STUDY: "study",
    PROP_BIOPROJECT: "bioproject",
    PROP_BIOSAMPLE: "biosample",
}
_COUNT_PROPERTIES = {
    PROP_TOTAL_SPOTS: "total_spots",
    PROP_TOTAL_BASES: "total_bases",
}

OUTPUT_COLUMNS = [
    "accession",
    "title",
    "organism",
    "platform",
    "library_strategy",
    "library_source",
    "library_selection",
    "library_layout",
    "total_spots",
    "total_bases",
    "study",
    "sample",
    "experiment",
    "run",
    "bioproject",
    "biosample",
    "submission_date",
    "publication_date",
]


@dataclass
class Record:
    accession: Optional[str] = None
    title: Optional[str] = None
    organism: Optional[str] = None
    platform: Optional[str] = None
    library_strategy: Optional[str] = None
    library_source: Optional[str] = None
    library_selection: Optional[str] = None
    library_layout: Optional[str] = None  # SINGLE, PAIRED, or None when unknown
    submission_date: Optional[datetime] = None
    publication_date: Optional[datetime] = None
    total_spots: int = 0
    total_bases: int = 0
    center_name: Optional[str] = None
    study: Optional[str] = None
    sample: Optional[str] = None
    experiment: Optional[str] = None
    run: Optional[str] = None
    bioproject: Optional[str] = None
    biosample: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    def is_paired_end(self) -> bool:
        return (self.library_layout or "").upper() == LAYOUT_PAIRED

    def to_dict(self) -> dict:
        """Return ordered dict of the output columns, dates as ISO strings and blanks for unset fields."""
        row = {}
        for col in OUTPUT_COLUMNS:
            value = getattr(self, col)
            if isinstance(value, datetime):
                value = value.isoformat()
            row[col] = "" if value is None else value
        return row


@dataclass
class SearchResult:
    records: List[Record] = field(default_factory=list)
    total_count: int = 0
    ret_start: int = 0
    ret_max: int = 0
    query_key: Optional[str] = None
    web_env: Optional[str] = None

    def has_more_results(self) -> bool:
        return self.ret_start + len(self.records) < self.total_count

    def next_start_index(self) -> int:
        return self.ret_start + len(self.records)


@dataclass
class DownloadedFileSet:
    """Files fasterq-dump produced for one accession."""

    accession: str
    files: List[Path] = field(default_factory=list)
    paired: bool = False
    verified: Dict[Path, bool] = field(default_factory=dict)

    @property
    def has_quality_scores(self) -> bool:
        return bool(self.files) and all(self.verified.get(f, False) for f in self.files)


def record_to_properties(record: Record) -> Dict[str, object]:
    """Flatten the persisted subset of a record into document properties."""
    props: Dict[str, object] = {}
    for key, attr in _TEXT_PROPERTIES.items():
        value = getattr(record, attr)
        if value is not None:
            props[key] = value
    for key, attr in _COUNT_PROPERTIES.items():
        value = getattr(record, attr)
        if value > 0:
            props[key] = value
    return props


def record_from_properties(props: Dict[str, object]) -> Record:
    """Rebuild a partial record from persisted properties.

    Only keys present in ``props`` are restored; counts that do not parse as
    integers stay at zero.
    """
    record = Record()
    for key, attr in _TEXT_PROPERTIES.items():
        value = props.get(key)
        if value is not None:
            setattr(record, attr, str(value))
    for key, attr in _COUNT_PROPERTIES.items():
        value = props.get(key)
        if value is None:
            continue
        try:
            setattr(record, attr, int(str(value)))
        except ValueError:
            pass
    return record
