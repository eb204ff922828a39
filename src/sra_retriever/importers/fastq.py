"""FASTQ importer that keeps Sanger (Phred+33) quality scores."""

import logging
from pathlib import Path
from typing import List, Optional

from Bio import SeqIO
from Bio.SeqRecord import SeqRecord

from sra_retriever.importers.base import SequenceImporter

logger = logging.getLogger(__name__)


class FastqImporter(SequenceImporter):
    def formats(self) -> List[str]:
        return ["fastq"]

    def import_file(self, path: Path, format_hint: Optional[str] = None) -> List[SeqRecord]:
        # fasterq-dump always writes Phred+33, which Biopython calls "fastq"
        records = list(SeqIO.parse(str(path), "fastq"))
        logger.debug("Imported %d FASTQ read(s) from %s", len(records), Path(path).name)
        return records
