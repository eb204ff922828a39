"""Command-line interface for sra-retriever."""

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import List, Optional

from sra_retriever.config import DEFAULT_RETMAX, Settings
from sra_retriever.errors import SraError
from sra_retriever.output import write_csv, write_tsv
from sra_retriever.query import AND, OR, SEARCH_FIELDS, CompoundQuery, FieldQuery, build_term
from sra_retriever.service import SraService

logger = logging.getLogger(__name__)

FIELD_CODES = [f.code for f in SEARCH_FIELDS]

_UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--ncbi-api-key", type=str, default=None,
        help="NCBI API key for higher rate limits (env: NCBI_API_KEY)",
    )
    common.add_argument(
        "--fasterq-dump", type=Path, default=None, metavar="PATH",
        help="Path to the fasterq-dump binary (env: SRA_FASTERQ_DUMP)",
    )
    common.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable verbose/debug logging",
    )

    parser = argparse.ArgumentParser(
        prog="sra-retriever",
        description="Search NCBI SRA metadata and download reads with fasterq-dump.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    search = sub.add_parser("search", parents=[common], help="Search SRA and print matching records")
    search.add_argument("terms", nargs="+", help="Search terms (e.g. 'Homo sapiens' PRJNA123456)")
    search.add_argument(
        "--field", choices=FIELD_CODES, default="search",
        help="Field to search in (default: search, i.e. all fields)",
    )
    search.add_argument(
        "--any", action="store_true",
        help="Match any of the terms instead of all of them",
    )
    search.add_argument("--start", type=int, default=0, help="Index of the first result (default: 0)")
    search.add_argument(
        "--max", type=int, default=DEFAULT_RETMAX, dest="ret_max",
        help=f"Maximum number of results (default: {DEFAULT_RETMAX})",
    )
    search.add_argument(
        "--format", choices=["tsv", "csv"], default="tsv", dest="fmt",
        help="Output format (default: tsv)",
    )

    download = sub.add_parser("download", parents=[common], help="Download reads for SRA accessions")
    download.add_argument("accessions", nargs="+", help="One or more SRA accessions (e.g. SRR000001)")
    download.add_argument(
        "-o", "--output", type=Path, default=Path("."),
        help="Directory for the downloaded read files (default: current directory)",
    )
    download.add_argument(
        "--no-split", action="store_false", dest="split_files",
        help="Do not split paired reads into separate mate files",
    )

    sub.add_parser("check", parents=[common], help="Check E-utilities and fasterq-dump availability")
    return parser


def build_query(terms: List[str], field_code: str = "search", match_any: bool = False):
    queries = [FieldQuery(field_code, [t]) for t in terms]
    if len(queries) == 1:
        return queries[0]
    return CompoundQuery(OR if match_any else AND, queries)


def safe_filename(name: str) -> str:
    """Turn a collection name into a single path component."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name).strip(" .")
    return cleaned or "reads"


def _print_progress(fraction: float, message: str) -> None:
    print(f"[{fraction:6.1%}] {message}", file=sys.stderr)


def run_search(service: SraService, args) -> int:
    term = build_term(build_query(args.terms, args.field, args.any))
    if not term:
        print("Error: nothing to search for", file=sys.stderr)
        return 2

    result = service.client.search(term, args.start, args.ret_max)
    if args.fmt == "csv":
        write_csv(result.records, sys.stdout)
    else:
        write_tsv(result.records, sys.stdout)

    shown = len(result.records)
    print(
        f"Showing {result.ret_start + 1 if shown else 0}-{result.ret_start + shown} "
        f"of {result.total_count} record(s).",
        file=sys.stderr,
    )
    if result.has_more_results():
        print(f"More results available: use --start {result.next_start_index()}", file=sys.stderr)
    return 0


def run_download(service: SraService, args) -> int:
    args.output.mkdir(parents=True, exist_ok=True)
    documents = [service.lookup(acc) for acc in args.accessions]

    print(f"Downloading {len(documents)} accession(s)...", file=sys.stderr)
    collections = service.download(documents, split_files=args.split_files, progress=_print_progress)

    for collection in collections:
        fmt = "fastq" if collection.has_quality_scores else "fasta"
        target = args.output / f"{safe_filename(collection.name)}.{fmt}"
        collection.write(target)
        kind = "paired" if collection.is_paired else "single"
        print(f"{collection.name}: {len(collection.sequences)} {kind} read(s) -> {target}")
    return 0


def run_check(service: SraService, args) -> int:
    ok = True
    if service.is_available():
        print("E-utilities: available")
    else:
        print("E-utilities: unavailable")
        ok = False

    if service.resolver.is_binary_available():
        binary = service.resolver.get_binary()
        version = service.resolver.get_binary_version() or "unknown version"
        print(f"fasterq-dump: {binary} ({version})")
    else:
        print("fasterq-dump: not found")
        ok = False
    return 0 if ok else 1


COMMANDS = {
    "search": run_search,
    "download": run_download,
    "check": run_check,
}


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    settings = Settings.from_env(
        ncbi_api_key=args.ncbi_api_key,
        fasterq_dump=args.fasterq_dump,
    )

    try:
        with SraService(settings) as service:
            status = COMMANDS[args.command](service, args)
    except SraError as exc:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)
    sys.exit(status)


if __name__ == "__main__":
    main()
