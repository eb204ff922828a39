"""Sequence importers used by the download pipeline."""

from sra_retriever.importers.fastq import FastqImporter
from sra_retriever.importers.generic import GenericImporter

__all__ = ["FastqImporter", "GenericImporter"]
