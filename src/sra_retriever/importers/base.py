"""Abstract base class for sequence file importers."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from Bio.SeqRecord import SeqRecord


class SequenceImporter(ABC):
    @abstractmethod
    def formats(self) -> List[str]:
        """Return the format names this importer reads (e.g., ['fastq'])."""
        ...

    @abstractmethod
    def import_file(self, path: Path, format_hint: Optional[str] = None) -> List[SeqRecord]:
        """Read every sequence in ``path``, in file order. Raises ValueError on malformed input."""
        ...
