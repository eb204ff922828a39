"""Write SRA records as TSV/CSV tables."""

import csv
from typing import Iterable, TextIO

from sra_retriever.models import OUTPUT_COLUMNS, Record


def write_tsv(records: Iterable[Record], fh: TextIO) -> None:
    _write(records, fh, delimiter="\t")


def write_csv(records: Iterable[Record], fh: TextIO) -> None:
    _write(records, fh, delimiter=",")


def _write(records: Iterable[Record], fh: TextIO, delimiter: str) -> None:
    writer = csv.DictWriter(
        fh, fieldnames=OUTPUT_COLUMNS, delimiter=delimiter, extrasaction="ignore", lineterminator="\n"
    )
    writer.writeheader()
    for rec in records:
        writer.writerow(rec.to_dict())

