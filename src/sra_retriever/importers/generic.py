"""Fallback importer that sniffs FASTQ vs FASTA from the first record marker."""

import logging
from pathlib import Path
from typing import List, Optional

from Bio import SeqIO
from Bio.SeqRecord import SeqRecord

from sra_retriever.importers.base import SequenceImporter

logger = logging.getLogger(__name__)

_MARKERS = {"@": "fastq", ">": "fasta"}


class GenericImporter(SequenceImporter):
    def formats(self) -> List[str]:
        return ["fastq", "fasta"]

    def import_file(self, path: Path, format_hint: Optional[str] = None) -> List[SeqRecord]:
        fmt = format_hint if format_hint in self.formats() else self._sniff(Path(path))
        if fmt is None:
            raise ValueError(f"Unrecognized sequence format: {Path(path).name}")
        records = list(SeqIO.parse(str(path), fmt))
        logger.debug("Imported %d %s record(s) from %s", len(records), fmt, Path(path).name)
        return records

    @staticmethod
    def _sniff(path: Path) -> Optional[str]:
        with open(path, "r", errors="replace") as fh:
            for line in fh:
                stripped = line.strip()
                if stripped:
                    return _MARKERS.get(stripped[0])
        # empty file: nothing to import either way
        return "fasta"
