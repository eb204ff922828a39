"""Shared fixtures for sra-retriever tests."""

import stat
import sys
import textwrap
from xml.sax.saxutils import escape

import pytest
import requests

from sra_retriever.binary import BinaryResolver
from sra_retriever.downloader import DownloadOrchestrator
from sra_retriever.eutils import EUtilsClient
from sra_retriever.rate_limiter import RateLimiter


@pytest.fixture
def fast_limiter():
    """Rate limiter that never blocks (high rate)."""
    return RateLimiter(10_000)


@pytest.fixture
def session():
    return requests.Session()


@pytest.fixture
def client(session, fast_limiter):
    return EUtilsClient(session, fast_limiter)


# --- Mock E-utilities payloads ---

EXP_XML = (
    '<Summary><Title>RNA-seq of human liver</Title>'
    '<Platform instrument_model="Illumina HiSeq 2500">ILLUMINA</Platform>'
    '<Statistics total_runs="1" total_spots="5" total_bases="1000" total_size="900" load_done="true"/>'
    '</Summary>'
    '<Submitter acc="SRA000001" center_name="GEO" contact_name="Jane Doe" lab_name=""/>'
    '<Experiment acc="SRX000001" ver="1" status="public" name="liver_rep1"/>'
    '<Study acc="SRP000001" name="Liver transcriptome"/>'
    '<Organism taxid="9606" ScientificName="Homo sapiens"/>'
    '<Sample acc="SRS000001" name=""/>'
    '<Instrument ILLUMINA="Illumina HiSeq 2500"/>'
    '<Library_descriptor><LIBRARY_NAME>rep1</LIBRARY_NAME>'
    '<LIBRARY_STRATEGY>RNA-Seq</LIBRARY_STRATEGY>'
    '<LIBRARY_SOURCE>TRANSCRIPTOMIC</LIBRARY_SOURCE>'
    '<LIBRARY_SELECTION>cDNA</LIBRARY_SELECTION>'
    '<LIBRARY_LAYOUT><PAIRED/></LIBRARY_LAYOUT></Library_descriptor>'
    '<Bioproject>PRJNA100001</Bioproject>'
    '<Biosample>SAMN00000001</Biosample>'
)

RUNS_XML = '<Run acc="SRR000001" total_spots="5" total_bases="1000" load_done="true" is_public="true"/>'


def xml_escape(payload: str) -> str:
    return escape(payload, {'"': "&quot;"})


def docsum_xml(uid: str, exp_xml: str = EXP_XML, runs_xml: str = RUNS_XML,
               create_date: str = "2020/01/15", update_date: str = "2020/02/01") -> str:
    return (
        f"<DocSum><Id>{uid}</Id>"
        f'<Item Name="ExpXml" Type="String">{xml_escape(exp_xml)}</Item>'
        f'<Item Name="Runs" Type="String">{xml_escape(runs_xml)}</Item>'
        '<Item Name="ExtLinks" Type="String"></Item>'
        f'<Item Name="CreateDate" Type="String">{create_date}</Item>'
        f'<Item Name="UpdateDate" Type="String">{update_date}</Item>'
        "</DocSum>"
    )


def esearch_xml(ids, count=None, ret_start=0) -> str:
    id_list = "".join(f"<Id>{uid}</Id>" for uid in ids)
    return (
        '<?xml version="1.0" encoding="UTF-8" ?>'
        f"<eSearchResult><Count>{len(ids) if count is None else count}</Count>"
        f"<RetMax>{len(ids)}</RetMax><RetStart>{ret_start}</RetStart>"
        "<QueryKey>1</QueryKey><WebEnv>MCID_0123456789</WebEnv>"
        f"<IdList>{id_list}</IdList></eSearchResult>"
    )


def esummary_xml(*docsums: str) -> str:
    return '<?xml version="1.0" encoding="UTF-8" ?><eSummaryResult>' + "".join(docsums) + "</eSummaryResult>"


@pytest.fixture
def esearch_payload():
    return esearch_xml(["101"], count=1)


@pytest.fixture
def esummary_payload():
    return esummary_xml(docsum_xml("101"))


# --- Fake fasterq-dump ---

_FAKE_TOOL = '''\
#!{python}
import os
import sys
import time

MODE = {mode!r}
READS = {reads!r}
OUTPUT = {output!r}
EXIT_CODE = {exit_code!r}

args = sys.argv[1:]
if args and args[0] == "--version":
    print("fasterq-dump : 3.0.0")
    sys.exit(0)

accession = args[0]
outdir = args[args.index("--outdir") + 1]
split = "--split-files" in args


def write_fastq(path, count, mate):
    with open(path, "w") as fh:
        for i in range(1, count + 1):
            fh.write("@%s.%d %d length=8\\n" % (accession, i, i))
            fh.write(("ACGTACGT" if mate == 1 else "TTGGCCAA") + "\\n")
            fh.write("+\\n")
            fh.write("IIIIIIII\\n")


if OUTPUT:
    print(OUTPUT)
if MODE == "fail":
    sys.exit(EXIT_CODE)
if MODE == "sleep":
    time.sleep(30)
    sys.exit(0)

print("spots read      : %d" % READS)
print("reads read      : %d" % (READS * 2))
if MODE == "paired" and split:
    write_fastq(os.path.join(outdir, accession + "_1.fastq"), READS, 1)
    write_fastq(os.path.join(outdir, accession + "_2.fastq"), READS, 2)
elif MODE == "mismatch":
    write_fastq(os.path.join(outdir, accession + "_1.fastq"), READS, 1)
    write_fastq(os.path.join(outdir, accession + "_2.fastq"), READS - 1, 2)
elif MODE == "fasta":
    with open(os.path.join(outdir, accession + ".fastq"), "w") as fh:
        for i in range(1, READS + 1):
            fh.write(">%s.%d\\nACGTACGT\\n" % (accession, i))
elif MODE == "cache":
    os.makedirs(os.path.join(outdir, accession))
elif MODE != "none":
    write_fastq(os.path.join(outdir, accession + ".fastq"), READS, 1)
sys.exit(0)
'''


@pytest.fixture
def fake_fasterq_dump(tmp_path):
    """Factory writing an executable stand-in for fasterq-dump.

    ``mode`` picks what it leaves in ``--outdir``: paired, single, mismatch,
    fasta, cache, none, fail (print ``output``, exit ``exit_code``) or sleep.
    """

    def _make(mode="paired", reads=5, output="", exit_code=0):
        path = tmp_path / "bin" / "fasterq-dump"
        path.parent.mkdir(exist_ok=True)
        path.write_text(textwrap.dedent(_FAKE_TOOL).format(
            python=sys.executable, mode=mode, reads=reads, output=output, exit_code=exit_code,
        ))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def work_root(tmp_path):
    root = tmp_path / "work"
    root.mkdir()
    return root


@pytest.fixture
def make_orchestrator(fake_fasterq_dump, work_root):
    def _make(**tool_options):
        resolver = BinaryResolver(explicit_path=fake_fasterq_dump(**tool_options), search_path=False)
        return DownloadOrchestrator(resolver, temp_root=work_root)

    return _make
