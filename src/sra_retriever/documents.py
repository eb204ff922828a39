"""Host-side documents: SRA dataset references and imported read collections."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from Bio import SeqIO
from Bio.SeqRecord import SeqRecord

from sra_retriever.config import DEFAULT_DATASET_LABEL, UNKNOWN_DOCUMENT_NAME
from sra_retriever.models import (
    PROP_ACCESSION,
    Record,
    record_from_properties,
    record_to_properties,
)

ORIENTATION_FORWARD_REVERSE = "ForwardReverse"


class SraDocument:
    """A search hit: one SRA dataset, named by its accession.

    ``properties`` is the persisted form of the record. A document restored
    from properties holds the partial record rebuilt by
    :func:`record_from_properties`; nothing is rehydrated lazily.
    """

    def __init__(self, record: Optional[Record] = None, name: Optional[str] = None):
        self.record = record
        if name is None:
            name = record.accession if record is not None and record.accession else UNKNOWN_DOCUMENT_NAME
        self.name = name
        self.properties: Dict[str, object] = record_to_properties(record) if record is not None else {}

    @classmethod
    def from_properties(cls, properties: Dict[str, object], name: Optional[str] = None) -> "SraDocument":
        record = None
        accession = properties.get(PROP_ACCESSION) or name
        if accession and accession != UNKNOWN_DOCUMENT_NAME:
            record = record_from_properties(properties)
            record.accession = str(accession)
        doc = cls(record, name=name)
        doc.properties = dict(properties)
        return doc

    @property
    def accession(self) -> Optional[str]:
        if self.record is not None and self.record.accession:
            return self.record.accession
        if self.name and self.name != UNKNOWN_DOCUMENT_NAME:
            return self.name
        return None

    @property
    def description(self) -> str:
        record = self.record or Record(accession=self.accession)
        lines = []
        if record.title:
            lines.extend([record.title, ""])
        lines.append(DEFAULT_DATASET_LABEL)
        lines.append(f"Accession: {record.accession}")
        for label, value in (
            ("Organism", record.organism),
            ("Platform", record.platform),
            ("Library Strategy", record.library_strategy),
            ("Library Layout", record.library_layout),
        ):
            if value is not None:
                lines.append(f"{label}: {value}")
        if record.total_spots > 0:
            lines.append(f"Total Spots: {record.total_spots:,}")
        if record.total_bases > 0:
            lines.append(f"Total Bases: {record.total_bases:,}")
        for label, value in (
            ("Study", record.study),
            ("BioProject", record.bioproject),
            ("BioSample", record.biosample),
        ):
            if value is not None:
                lines.append(f"{label}: {value}")
        lines.append("")
        lines.append("This is an SRA dataset reference. Download it to obtain the actual sequence data.")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"SraDocument(name={self.name!r})"


@dataclass
class MateInfo:
    mate_index: int
    distance: int


@dataclass
class PairedReads:
    """Mate relationships for an interlaced read list (one entry per read)."""

    mates: List[MateInfo] = field(default_factory=list)
    interlaced: bool = False
    expected_distance: int = 0
    orientation: Optional[str] = None

    def set_interlaced(self, expected_distance: int, orientation: str = ORIENTATION_FORWARD_REVERSE) -> None:
        self.interlaced = True
        self.expected_distance = expected_distance
        self.orientation = orientation


@dataclass
class SequenceListDocument:
    name: str
    sequences: List[SeqRecord] = field(default_factory=list)
    paired_reads: Optional[PairedReads] = None

    @property
    def is_paired(self) -> bool:
        return self.paired_reads is not None

    @property
    def has_quality_scores(self) -> bool:
        return bool(self.sequences) and all(
            "phred_quality" in seq.letter_annotations for seq in self.sequences
        )

    def write(self, path: Path) -> str:
        """Write the reads to ``path`` as FASTQ, or FASTA when qualities are missing. Returns the format."""
        fmt = "fastq" if self.has_quality_scores else "fasta"
        SeqIO.write(self.sequences, str(path), fmt)
        return fmt
