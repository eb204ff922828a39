"""
SRA Downloader - run fasterq-dump per accession and import the reads.

For each accession:
    1. run fasterq-dump into a private temp directory
    2. find <acc>_1.fastq / <acc>_2.fastq (or <acc>.fastq)
    3. check the files really carry quality scores
    4. import them; a _1/_2 pair becomes one interlaced, mate-paired collection
    5. delete everything fasterq-dump produced

A batch runs strictly in order and the first failing accession aborts the
whole call: documents imported for earlier accessions are discarded.
"""

import logging
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple, Union

from Bio.SeqRecord import SeqRecord

from sra_retriever.binary import BinaryResolver
from sra_retriever.config import (
    DEFAULT_DATASET_LABEL,
    MATE_DISTANCE,
    TEMP_DIR_PREFIX,
    UNKNOWN_DOCUMENT_NAME,
)
from sra_retriever.documents import (
    ORIENTATION_FORWARD_REVERSE,
    MateInfo,
    PairedReads,
    SequenceListDocument,
    SraDocument,
)
from sra_retriever.errors import (
    Cancelled,
    DownloadError,
    ExtractionPermissionError,
    GeneralFailure,
    NetworkError,
    NotFound,
    ToolUnavailable,
)
from sra_retriever.importers import FastqImporter, GenericImporter
from sra_retriever.importers.base import SequenceImporter
from sra_retriever.models import DownloadedFileSet, Record

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float, str], None]

_PROGRESS_MARKERS = ("spots read", "reads read")
_WAIT_POLL_SECONDS = 0.2


def build_command(binary: Path, accession: str, output_dir: Path, split_files: bool = True) -> List[str]:
    command = [
        str(binary), accession,
        "--outdir", str(output_dir),
        "--format", "fastq",  # quality-bearing output, never FASTA
    ]
    if split_files:
        command.append("--split-files")
    command.extend(["--progress", "--details", "--skip-technical"])
    return command


def classify_failure(accession: str, exit_code: int, output: str) -> DownloadError:
    """Map a non-zero fasterq-dump exit to the matching error."""
    text = output.lower()
    if any(word in text for word in ("timeout", "network", "connection")):
        return NetworkError(
            f"Network error downloading {accession}. "
            "Please check your internet connection and try again.",
            accession, output,
        )
    if "not found" in text or "invalid" in text:
        return NotFound(f"SRA accession {accession} was not found or is invalid.", accession, output)
    if "permission" in text or "access" in text:
        return ExtractionPermissionError(
            f"Permission denied accessing SRA data for {accession}. The dataset may be restricted.",
            accession, output,
        )
    return GeneralFailure(
        f"fasterq-dump failed for {accession} (exit code: {exit_code})\nOutput: {output}",
        accession, output,
    )


def discover_files(accession: str, output_dir: Path, split_files: bool = True) -> List[Path]:
    """Return the FASTQ files fasterq-dump wrote for ``accession``, forward first."""
    output_dir = Path(output_dir)
    single = output_dir / f"{accession}.fastq"
    if not split_files:
        return [single] if single.exists() else []

    files = [
        path for path in (output_dir / f"{accession}_1.fastq", output_dir / f"{accession}_2.fastq")
        if path.exists()
    ]
    if not files and single.exists():
        files.append(single)
    return files


def verify_fastq_format(path: Path) -> bool:
    """True if the first record is quality-bearing FASTQ (not FASTA)."""
    try:
        with open(path, "r", encoding="ascii", errors="replace") as fh:
            lines = [fh.readline() for _ in range(4)]
    except OSError:
        logger.warning("Error verifying file format for %s", Path(path).name, exc_info=True)
        return False

    header, seq, plus, qual = lines
    if not header or header.startswith(">") or not header.startswith("@"):
        return False
    # readline() returns "" only at EOF, so a missing line is falsy
    if not seq or not plus or not qual:
        return False
    seq, plus, qual = (line.rstrip("\r\n") for line in (seq, plus, qual))
    if not plus.startswith("+"):
        return False
    if len(qual) != len(seq):
        return False
    return all(33 <= ord(ch) <= 126 for ch in qual)


def is_paired_file_set(files: Sequence[Path]) -> bool:
    return len(files) == 2 and "_1" in Path(files[0]).name and "_2" in Path(files[1]).name


def document_name(accession: str, record: Optional[Record]) -> str:
    if record is not None and record.title:
        return f"{accession} - {record.title}"
    return f"{accession} - {DEFAULT_DATASET_LABEL}"


def resolve_accession(record: Optional[Record], display_name: Optional[str] = None) -> Optional[str]:
    if record is not None and record.accession:
        return record.accession
    if display_name and display_name != UNKNOWN_DOCUMENT_NAME:
        return display_name
    return None


def add_mate_suffix(read: SeqRecord, mate: int) -> SeqRecord:
    """Append /1 or /2 to the read id unless it already ends with /N or /RN."""
    suffixes = (f"/{mate}", f"/R{mate}")
    if read.id.endswith(suffixes):
        return read
    old_id = read.id
    read.id = old_id + f"/{mate}"
    read.name = read.id
    parts = read.description.split(None, 1)
    if parts and parts[0] == old_id:
        read.description = " ".join([read.id] + parts[1:])
    return read


def interleave_pairs(
    forward: Sequence[SeqRecord],
    reverse: Sequence[SeqRecord],
    mate_distance: int = MATE_DISTANCE,
) -> Tuple[List[SeqRecord], PairedReads]:
    """Interleave mates as f0, r0, f1, r1, ... and describe the pairing.

    Callers must pass equally sized lists.
    """
    reads: List[SeqRecord] = []
    paired = PairedReads()
    for fwd, rev in zip(forward, reverse):
        i = len(reads)
        reads.append(add_mate_suffix(fwd, 1))
        reads.append(add_mate_suffix(rev, 2))
        paired.mates.append(MateInfo(mate_index=i + 1, distance=mate_distance))
        paired.mates.append(MateInfo(mate_index=i, distance=-mate_distance))
    paired.set_interlaced(mate_distance, ORIENTATION_FORWARD_REVERSE)
    return reads, paired


DownloadItem = Union[SraDocument, Record]


class DownloadOrchestrator:
    def __init__(
        self,
        resolver: BinaryResolver,
        fastq_importer: Optional[SequenceImporter] = None,
        generic_importer: Optional[SequenceImporter] = None,
        mate_distance: int = MATE_DISTANCE,
        temp_root: Optional[Path] = None,
    ):
        self._resolver = resolver
        self._fastq_importer = fastq_importer or FastqImporter()
        self._generic_importer = generic_importer or GenericImporter()
        self._mate_distance = mate_distance
        self._temp_root = temp_root

    def download_and_import(
        self,
        items: Sequence[DownloadItem],
        split_files: bool = True,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[SequenceListDocument]:
        """Download and import every item in order; the first failure aborts the batch."""
        if not self._resolver.is_binary_available():
            raise ToolUnavailable("fasterq-dump binary is not available. Please install NCBI SRA Toolkit.")
        report = progress or _no_progress

        documents: List[SequenceListDocument] = []
        total = len(items)
        report(0.0, "Initializing download...")

        for idx, item in enumerate(items):
            record, display_name = _unpack(item)
            accession = resolve_accession(record, display_name)
            if accession is None:
                logger.info("Skipping document without valid accession: %r", item)
                continue

            base = idx / total
            span = 1.0 / total
            report(base, f"Downloading {accession} ({idx + 1} of {total})...")
            try:
                documents.extend(
                    self.download_one(accession, record, split_files, report, cancel_event, base, span)
                )
            except (Cancelled, DownloadError, ToolUnavailable):
                raise
            except Exception as exc:
                raise GeneralFailure(
                    f"Failed to download SRA data for {accession}: {exc}", accession
                ) from exc

        report(1.0, f"Successfully imported {len(documents)} sequence list(s)")
        return documents

    def download_one(
        self,
        accession: str,
        record: Optional[Record] = None,
        split_files: bool = True,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        base: float = 0.0,
        span: float = 1.0,
    ) -> List[SequenceListDocument]:
        report = progress or _no_progress
        if cancel_event is not None and cancel_event.is_set():
            raise Cancelled("Download was cancelled")
        workdir = Path(tempfile.mkdtemp(prefix=TEMP_DIR_PREFIX, dir=self._temp_root))
        try:
            self.run_extraction(accession, workdir, split_files, report, cancel_event, base)
            report(base + span * 0.7, f"Importing FASTQ files for {accession}...")

            file_set = self.collect_files(accession, workdir, split_files)
            documents = self.import_file_set(file_set, record)
            report(base + span, f"Imported {accession}")
            return documents
        finally:
            _cleanup(workdir)

    def run_extraction(
        self,
        accession: str,
        output_dir: Path,
        split_files: bool = True,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
        base: float = 0.0,
    ) -> str:
        """Run fasterq-dump and return its combined output; raise on non-zero exit."""
        report = progress or _no_progress
        command = build_command(self._resolver.get_binary(), accession, output_dir, split_files)
        logger.info("Executing command: %s", " ".join(command))
        logger.debug("Working directory: %s", output_dir)
        report(base, f"Downloading {accession} with fasterq-dump...")

        try:
            process = subprocess.Popen(
                command,
                cwd=str(output_dir),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except OSError as exc:
            raise GeneralFailure(f"Failed to execute fasterq-dump: {exc}", accession) from exc

        output_lines: List[str] = []

        def _drain() -> None:
            # drains until the process closes its stdout
            for line in process.stdout:
                output_lines.append(line)
                if any(marker in line for marker in _PROGRESS_MARKERS):
                    report(base, f"{accession}: {line.strip()}")

        reader = threading.Thread(target=_drain, name=f"fasterq-dump-{accession}", daemon=True)
        reader.start()

        try:
            exit_code = _wait(process, cancel_event)
        finally:
            reader.join(timeout=5)
            process.stdout.close()

        output = "".join(output_lines)
        if exit_code != 0:
            logger.error("fasterq-dump failed for %s (exit code: %d)\n%s", accession, exit_code, output)
            raise classify_failure(accession, exit_code, output)
        return output

    def collect_files(self, accession: str, output_dir: Path, split_files: bool = True) -> DownloadedFileSet:
        """Find and verify the files of a successful run."""
        files = discover_files(accession, output_dir, split_files)
        if not files:
            listing = _directory_listing(output_dir)
            logger.error("No FASTQ files found for %s in %s\n%s", accession, output_dir, listing)
            if (Path(output_dir) / accession).is_dir():
                raise GeneralFailure(
                    "fasterq-dump created cache directory instead of FASTQ files. This may "
                    "indicate incomplete download or SRA toolkit configuration issues.",
                    accession,
                )
            raise GeneralFailure(
                f"No FASTQ files were created by fasterq-dump for {accession}. "
                f"Directory contents:\n{listing}",
                accession,
            )

        file_set = DownloadedFileSet(accession=accession, files=files, paired=is_paired_file_set(files))
        for path in files:
            ok = verify_fastq_format(path)
            file_set.verified[path] = ok
            if ok:
                logger.debug("Verified %s is valid FASTQ with quality scores", path.name)
            else:
                logger.warning(
                    "File %s appears to be FASTA format without quality scores; "
                    "importing it anyway", path.name,
                )
        return file_set

    def import_file_set(self, file_set: DownloadedFileSet, record: Optional[Record] = None) -> List[SequenceListDocument]:
        name = document_name(file_set.accession, record)
        if file_set.paired:
            forward_path, reverse_path = file_set.files
            forward = self._import(forward_path, file_set)
            reverse = self._import(reverse_path, file_set)
            if len(forward) != len(reverse):
                raise GeneralFailure(
                    "Paired-end files have different numbers of sequences: "
                    f"{len(forward)} in {forward_path.name}, {len(reverse)} in {reverse_path.name}",
                    file_set.accession,
                )
            if not forward:
                raise GeneralFailure("No valid sequences found in FASTQ files", file_set.accession)
            reads, paired = interleave_pairs(forward, reverse, self._mate_distance)
            logger.info("Interleaved %d read pair(s) for %s", len(forward), file_set.accession)
            return [SequenceListDocument(name=name, sequences=reads, paired_reads=paired)]

        documents = []
        for path in file_set.files:
            reads = self._import(path, file_set)
            if reads:
                documents.append(SequenceListDocument(name=name, sequences=reads))
        if not documents:
            raise GeneralFailure("No valid sequences found in FASTQ files", file_set.accession)
        return documents

    def _import(self, path: Path, file_set: DownloadedFileSet) -> List[SeqRecord]:
        if file_set.has_quality_scores:
            importer, hint = self._fastq_importer, "fastq"
        else:
            importer, hint = self._generic_importer, None
        try:
            return importer.import_file(path, hint)
        except (ValueError, OSError) as exc:
            raise GeneralFailure(f"Failed to import FASTQ file {path.name}: {exc}", file_set.accession) from exc


def _unpack(item: DownloadItem) -> Tuple[Optional[Record], Optional[str]]:
    if isinstance(item, SraDocument):
        return item.record, item.name
    return item, None


def _wait(process: subprocess.Popen, cancel_event: Optional[threading.Event]) -> int:
    while True:
        try:
            return process.wait(timeout=_WAIT_POLL_SECONDS)
        except subprocess.TimeoutExpired:
            if cancel_event is not None and cancel_event.is_set():
                process.kill()
                process.wait()
                raise Cancelled("Download was cancelled")


def _directory_listing(directory: Path) -> str:
    try:
        entries = sorted(Path(directory).iterdir())
    except OSError:
        return "  (unreadable)"
    if not entries:
        return "  (empty)"
    return "\n".join(f"  {p.name} (size: {p.stat().st_size})" for p in entries)


def _cleanup(workdir: Path) -> None:
    """Delete everything fasterq-dump produced. Failures are logged, never raised."""
    try:
        for path in sorted(workdir.rglob("*"), reverse=True):
            if path.is_dir():
                path.rmdir()
            else:
                path.unlink()
        workdir.rmdir()
    except OSError:
        logger.warning("Could not fully delete temporary directory %s", workdir, exc_info=True)
        shutil.rmtree(workdir, ignore_errors=True)


def _no_progress(fraction: float, message: str) -> None:
    pass
