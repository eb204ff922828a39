"""Translate structured or free-text queries into E-utilities field-tagged search terms."""

import re
from dataclasses import dataclass, field
from typing import List, NamedTuple, Sequence, Union

AND = "AND"
OR = "OR"

# Field code -> E-utilities field tag ("" means untagged free text)
FIELD_TAGS = {
    "search": "",
    "accession": "[Accession]",
    "bioproject": "[Bioproject]",
    "biosample": "[Biosample]",
    "organism": "[Organism]",
    "library_strategy": "[Strategy]",
    "platform": "[Platform]",
    "library_source": "[Source]",
}

_ACCESSION_RE = re.compile(
    r"^(SRR|ERR|DRR|SRX|ERX|DRX|SRS|ERS|DRS|SRP|ERP|DRP|SRA|ERA|DRA)\d+$"
)
_BIOPROJECT_RE = re.compile(r"^PRJ[NED][A-Z]\d+$")
_BIOSAMPLE_RE = re.compile(r"^SAM[NED][A-Z]?\d+$")


class SearchField(NamedTuple):
    code: str
    label: str
    description: str
    conditions: tuple


SEARCH_FIELDS = [
    SearchField("search", "Search All",
                "Search SRA by accession, organism, or free text", ("contains",)),
    SearchField("accession", "SRA Accession",
                "Specific SRA/ENA/DRA accession (e.g. SRR123456, ERR123456)", ("equal", "contains")),
    SearchField("bioproject", "BioProject ID",
                "BioProject accession (e.g. PRJNA123456)", ("equal", "contains")),
    SearchField("biosample", "BioSample ID",
                "BioSample accession (e.g. SAMN12345678)", ("equal", "contains")),
    SearchField("organism", "Organism",
                "Organism/species name (e.g. Homo sapiens, E. coli)", ("contains",)),
    SearchField("library_strategy", "Library Strategy",
                "Sequencing strategy (e.g. RNA-Seq, WGS, ChIP-Seq, ATAC-seq)", ("contains", "equal")),
    SearchField("platform", "Sequencing Platform",
                "Sequencing platform (e.g. Illumina, PacBio, Nanopore)", ("contains", "equal")),
    SearchField("library_source", "Library Source",
                "Library source (e.g. GENOMIC, TRANSCRIPTOMIC, METAGENOMIC)", ("contains", "equal")),
]


@dataclass
class BasicQuery:
    text: str = ""


@dataclass
class FieldQuery:
    field: str
    values: Sequence[object] = ()


@dataclass
class CompoundQuery:
    operator: str = AND
    children: List["Query"] = field(default_factory=list)


Query = Union[BasicQuery, FieldQuery, CompoundQuery]


def build_term(query) -> str:
    """Build the E-utilities term for ``query``. Never raises; "" means no search."""
    if isinstance(query, BasicQuery):
        return (query.text or "").strip()
    if isinstance(query, FieldQuery):
        return _build_field_term(query)
    if isinstance(query, CompoundQuery):
        return _build_compound_term(query)
    return ""


def _build_field_term(query: FieldQuery) -> str:
    values = query.values or ()
    if not values or values[0] is None:
        return ""
    value = str(values[0]).strip()
    if not value:
        return ""
    return value + FIELD_TAGS.get(query.field, "")


def _build_compound_term(query: CompoundQuery) -> str:
    terms = [t for t in (build_term(child) for child in query.children or []) if t]
    if not terms:
        return ""
    joiner = " AND " if str(query.operator).upper() == AND else " OR "
    return joiner.join(terms)


def is_likely_accession(term: str) -> bool:
    if not term or len(term) < 6:
        return False
    return bool(_ACCESSION_RE.match(term))


def is_likely_bioproject(term: str) -> bool:
    return bool(term) and bool(_BIOPROJECT_RE.match(term))


def is_likely_biosample(term: str) -> bool:
    return bool(term) and bool(_BIOSAMPLE_RE.match(term))


def optimize_term(term: str) -> str:
    """Tag a bare accession, BioProject or BioSample id with its field."""
    if not term or not term.strip():
        return term
    optimized = term.strip()
    if "[" in optimized:
        return optimized
    if is_likely_accession(optimized):
        return optimized + FIELD_TAGS["accession"]
    if is_likely_bioproject(optimized):
        return optimized + FIELD_TAGS["bioproject"]
    if is_likely_biosample(optimized):
        return optimized + FIELD_TAGS["biosample"]
    return optimized
