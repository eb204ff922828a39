"""Service facade — search SRA for matching documents and download selected ones."""

import logging
import threading
from typing import Callable, List, Optional, Sequence

from sra_retriever.binary import BinaryResolver
from sra_retriever.config import MAX_RETMAX, Settings
from sra_retriever.documents import SequenceListDocument, SraDocument
from sra_retriever.downloader import DownloadItem, DownloadOrchestrator, ProgressCallback
from sra_retriever.errors import Cancelled
from sra_retriever.eutils import EUtilsClient, new_session
from sra_retriever.query import build_term
from sra_retriever.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


class SraService:
    """Owns the HTTP session, the metadata client and the binary resolver.

    Use as a context manager (or call :meth:`close`) so a fasterq-dump binary
    extracted from a bundled directory is removed again.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[EUtilsClient] = None,
        resolver: Optional[BinaryResolver] = None,
        orchestrator: Optional[DownloadOrchestrator] = None,
    ):
        self.settings = settings or Settings.from_env()

        self._session = new_session()
        self._limiter = RateLimiter(self.settings.ncbi_rate)

        self.client = client or EUtilsClient(self._session, self._limiter, self.settings.ncbi_api_key)
        self.resolver = resolver or BinaryResolver(
            explicit_path=self.settings.fasterq_dump,
            bundled_dir=self.settings.binaries_dir,
        )
        self.orchestrator = orchestrator or DownloadOrchestrator(self.resolver)

    def __enter__(self) -> "SraService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.resolver.cleanup()
        self._session.close()

    def retrieve(
        self,
        query,
        callback: Optional[Callable[[SraDocument], None]] = None,
        cancel_event: Optional[threading.Event] = None,
        ret_max: int = MAX_RETMAX,
    ) -> List[SraDocument]:
        """Search for ``query`` and return one document per matching record.

        An empty query returns no documents without contacting NCBI.
        """
        term = build_term(query)
        if not term:
            return []

        result = self.client.search(term, 0, ret_max, cancel_event=cancel_event)
        documents = []
        for record in result.records:
            if cancel_event is not None and cancel_event.is_set():
                raise Cancelled("Search was cancelled")
            doc = SraDocument(record)
            documents.append(doc)
            if callback is not None:
                callback(doc)
        logger.info("Retrieved %d SRA document(s) for %r", len(documents), term)
        return documents

    def lookup(self, accession: str, cancel_event: Optional[threading.Event] = None) -> SraDocument:
        """Return the document for ``accession``; a bare-name document when NCBI has no match."""
        record = self.client.search_by_accession(accession, cancel_event=cancel_event)
        if record is None:
            logger.warning("No SRA record found for %s; downloading by name only", accession)
            return SraDocument(name=accession.strip())
        return SraDocument(record)

    def download(
        self,
        documents: Sequence[DownloadItem],
        split_files: bool = True,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[SequenceListDocument]:
        return self.orchestrator.download_and_import(
            documents, split_files=split_files, progress=progress, cancel_event=cancel_event
        )

    def is_available(self) -> bool:
        return self.client.is_available()
