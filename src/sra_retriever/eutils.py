"""Search NCBI SRA and fetch record summaries via E-utilities (esearch + esummary)."""

import logging
import threading
from typing import List, Optional
from xml.parsers.expat import ExpatError

import requests
import xmltodict
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from sra_retriever.config import (
    DATABASE,
    DEFAULT_RETMAX,
    ESEARCH_URL,
    ESUMMARY_URL,
    EUTILS_BASE_URL,
    NCBI_RATE,
    PROBE_TIMEOUT,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from sra_retriever.docsum import decode_docsum
from sra_retriever.errors import Cancelled, InvalidArgument, TransientIOError
from sra_retriever.models import Record, SearchResult
from sra_retriever.query import FIELD_TAGS, optimize_term
from sra_retriever.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Elements that must always parse as lists, even with a single occurrence
_FORCE_LIST = ("Id", "DocSum", "Item")


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


class EUtilsClient:
    def __init__(
        self,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        api_key: Optional[str] = None,
    ):
        self._session = session or new_session()
        self._limiter = rate_limiter or RateLimiter(NCBI_RATE)
        self._api_key = api_key

    def search(
        self,
        term: str,
        ret_start: int = 0,
        ret_max: int = DEFAULT_RETMAX,
        cancel_event: Optional[threading.Event] = None,
    ) -> SearchResult:
        """Run esearch for ``term`` and decode the matching page via esummary."""
        if term is None or not term.strip():
            raise InvalidArgument("Query term cannot be empty")
        if ret_max <= 0:
            ret_max = DEFAULT_RETMAX

        optimized = optimize_term(term)
        logger.debug("esearch term=%r retstart=%d retmax=%d", optimized, ret_start, ret_max)

        # 1. esearch: ids plus paging/history tokens
        params = {
            "db": DATABASE,
            "term": optimized,
            "retstart": str(ret_start),
            "retmax": str(ret_max),
            "usehistory": "y",
            "retmode": "xml",
        }
        root = self._fetch_xml(ESEARCH_URL, params, cancel_event)
        result = parse_search_result(root)
        uids = extract_uids(root)

        # 2. esummary for the whole page in one request
        if uids:
            result.records = self._fetch_summaries(uids, cancel_event)
        else:
            result.records = []

        logger.info(
            "SRA search %r: %d of %d record(s) from offset %d",
            optimized, len(result.records), result.total_count, result.ret_start,
        )
        return result

    def search_by_accession(
        self, accession: str, cancel_event: Optional[threading.Event] = None
    ) -> Optional[Record]:
        """Return the first record for ``accession``, or None when nothing matches."""
        term = self._tagged(accession, "accession", "Accession cannot be empty")
        result = self.search(term, 0, 1, cancel_event=cancel_event)
        return result.records[0] if result.records else None

    def search_by_bioproject(self, bioproject: str, ret_start: int = 0, ret_max: int = DEFAULT_RETMAX) -> SearchResult:
        term = self._tagged(bioproject, "bioproject", "BioProject ID cannot be empty")
        return self.search(term, ret_start, ret_max)

    def search_by_biosample(self, biosample: str, ret_start: int = 0, ret_max: int = DEFAULT_RETMAX) -> SearchResult:
        term = self._tagged(biosample, "biosample", "BioSample ID cannot be empty")
        return self.search(term, ret_start, ret_max)

    def search_by_organism(self, organism: str, ret_start: int = 0, ret_max: int = DEFAULT_RETMAX) -> SearchResult:
        term = self._tagged(organism, "organism", "Organism name cannot be empty")
        return self.search(term, ret_start, ret_max)

    def search_by_library_strategy(self, strategy: str, ret_start: int = 0, ret_max: int = DEFAULT_RETMAX) -> SearchResult:
        term = self._tagged(strategy, "library_strategy", "Library strategy cannot be empty")
        return self.search(term, ret_start, ret_max)

    def is_available(self) -> bool:
        """Liveness probe: HEAD the E-utilities base URL, True only on HTTP 200."""
        try:
            resp = self._session.head(EUTILS_BASE_URL, timeout=PROBE_TIMEOUT)
            return resp.status_code == 200
        except Exception:
            logger.debug("E-utilities probe failed", exc_info=True)
            return False

    @staticmethod
    def _tagged(value: str, field_code: str, message: str) -> str:
        if value is None or not value.strip():
            raise InvalidArgument(message)
        return value.strip() + FIELD_TAGS[field_code]

    def _fetch_summaries(self, uids: List[str], cancel_event: Optional[threading.Event]) -> List[Record]:
        params = {"db": DATABASE, "id": ",".join(uids), "retmode": "xml"}
        root = self._fetch_xml(ESUMMARY_URL, params, cancel_event)
        return parse_summary_records(root)

    def _fetch_xml(self, url: str, params: dict, cancel_event: Optional[threading.Event]) -> dict:
        """GET ``url`` and return the parsed root element of the XML response."""
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled("Operation was cancelled")
        try:
            resp = self._http_get_with_retry(url, params, cancel_event)
        except requests.RequestException as exc:
            raise TransientIOError(f"Request to {url} failed: {exc}") from exc

        if resp.status_code != 200:
            raise TransientIOError(f"HTTP error {resp.status_code} when accessing {resp.url}")

        try:
            doc = xmltodict.parse(resp.content, force_list=_FORCE_LIST)
        except (ExpatError, ValueError) as exc:
            raise TransientIOError(f"Error parsing XML response from {url}: {exc}") from exc
        if not doc:
            raise TransientIOError(f"Empty XML response from {url}")
        root = next(iter(doc.values()))
        return root if isinstance(root, dict) else {}

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _http_get_with_retry(
        self, url: str, params: dict, cancel_event: Optional[threading.Event]
    ) -> requests.Response:
        self._limiter.acquire(cancel_event)
        params = dict(params)
        if self._api_key:
            params["api_key"] = self._api_key
        resp = self._session.get(url, params=params, timeout=REQUEST_TIMEOUT)
        if resp.status_code == 429:
            raise requests.ConnectionError("Rate limited (429)")
        return resp


def parse_search_result(root: dict) -> SearchResult:
    """Read count, paging and history tokens from an eSearchResult root."""
    result = SearchResult()
    try:
        if root.get("Count") is not None:
            result.total_count = int(root["Count"])
        if root.get("RetStart") is not None:
            result.ret_start = int(root["RetStart"])
        if root.get("RetMax") is not None:
            result.ret_max = int(root["RetMax"])
    except (TypeError, ValueError) as exc:
        raise TransientIOError(f"Malformed esearch response: {exc}") from exc
    result.query_key = root.get("QueryKey")
    result.web_env = root.get("WebEnv")
    return result


def extract_uids(root: dict) -> List[str]:
    id_list = root.get("IdList")
    if not isinstance(id_list, dict):
        return []
    return [str(uid) for uid in id_list.get("Id", []) if uid is not None]


def parse_summary_records(root: dict) -> List[Record]:
    """Decode every DocSum; a failure in one block never affects its siblings."""
    records = []
    for docsum in root.get("DocSum", []):
        if not isinstance(docsum, dict):
            continue
        try:
            decoded = decode_docsum(docsum)
        except Exception:
            logger.warning("Skipping undecodable DocSum", exc_info=True)
            continue
        for warning in decoded.warnings:
            logger.debug("DocSum %s: %s", decoded.record.attributes.get("uid", "?"), warning)
        records.append(decoded.record)
    if "ERROR" in root:
        logger.warning("esummary reported an error: %s", root["ERROR"])
    return records
