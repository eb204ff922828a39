"""
Configuration for sra-retriever.

Module-level defaults for the E-utilities endpoints and the download
pipeline, plus environment-driven settings.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# NCBI E-utilities
EUTILS_BASE_URL = "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/"
ESEARCH_URL = EUTILS_BASE_URL + "esearch.fcgi"
ESUMMARY_URL = EUTILS_BASE_URL + "esummary.fcgi"
DATABASE = "sra"
USER_AGENT = "sra-retriever/0.1.0 (NCBI SRA search and fasterq-dump download)"

DEFAULT_RETMAX = 20
MAX_RETMAX = 10_000
REQUEST_TIMEOUT = 30
PROBE_TIMEOUT = 5

# Requests per second allowed by NCBI without / with an API key
NCBI_RATE = 3.0
NCBI_RATE_WITH_KEY = 10.0

# Download pipeline
MATE_DISTANCE = 300
UNKNOWN_DOCUMENT_NAME = "Unknown SRA"
DEFAULT_DATASET_LABEL = "NCBI SRA Dataset"
TEMP_DIR_PREFIX = "sra_download_"

# Environment variables
ENV_API_KEY = "NCBI_API_KEY"
ENV_FASTERQ_DUMP = "SRA_FASTERQ_DUMP"
ENV_BINARIES_DIR = "SRA_BINARIES_DIR"


@dataclass
class Settings:
    ncbi_api_key: Optional[str] = None
    fasterq_dump: Optional[Path] = None
    binaries_dir: Optional[Path] = None

    @property
    def ncbi_rate(self) -> float:
        return NCBI_RATE_WITH_KEY if self.ncbi_api_key else NCBI_RATE

    @classmethod
    def from_env(cls, **overrides) -> "Settings":
        """Read settings from the environment; non-None keyword overrides win."""
        binary = os.environ.get(ENV_FASTERQ_DUMP)
        binaries_dir = os.environ.get(ENV_BINARIES_DIR)
        settings = cls(
            ncbi_api_key=os.environ.get(ENV_API_KEY) or None,
            fasterq_dump=Path(binary) if binary else None,
            binaries_dir=Path(binaries_dir) if binaries_dir else None,
        )
        for name, value in overrides.items():
            if value is not None:
                setattr(settings, name, value)
        return settings
