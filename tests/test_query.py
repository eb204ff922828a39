import pytest

from sra_retriever.query import (
    AND,
    OR,
    SEARCH_FIELDS,
    BasicQuery,
    CompoundQuery,
    FieldQuery,
    build_term,
    is_likely_accession,
    is_likely_bioproject,
    is_likely_biosample,
    optimize_term,
)


def test_basic_query_is_trimmed():
    assert build_term(BasicQuery("  Homo sapiens  ")) == "Homo sapiens"


@pytest.mark.parametrize("code, expected", [
    ("search", "liver"),
    ("accession", "liver[Accession]"),
    ("bioproject", "liver[Bioproject]"),
    ("biosample", "liver[Biosample]"),
    ("organism", "liver[Organism]"),
    ("library_strategy", "liver[Strategy]"),
    ("platform", "liver[Platform]"),
    ("library_source", "liver[Source]"),
    ("no_such_field", "liver"),
])
def test_field_query_tags(code, expected):
    assert build_term(FieldQuery(code, ["liver"])) == expected


def test_field_query_uses_first_value_only():
    assert build_term(FieldQuery("organism", ["Homo sapiens", "Mus musculus"])) == "Homo sapiens[Organism]"


@pytest.mark.parametrize("values", [[], [None], ["   "], None])
def test_field_query_without_value_is_empty(values):
    assert build_term(FieldQuery("organism", values)) == ""


def test_compound_query_and():
    query = CompoundQuery(AND, [
        FieldQuery("organism", ["Homo sapiens"]),
        FieldQuery("library_strategy", ["RNA-Seq"]),
    ])
    assert build_term(query) == "Homo sapiens[Organism] AND RNA-Seq[Strategy]"


def test_compound_query_or_drops_empty_children():
    query = CompoundQuery(OR, [
        FieldQuery("organism", [""]),
        BasicQuery("liver"),
        CompoundQuery(AND, []),
        FieldQuery("platform", ["Illumina"]),
    ])
    assert build_term(query) == "liver OR Illumina[Platform]"


def test_compound_query_all_empty():
    assert build_term(CompoundQuery(AND, [BasicQuery(""), FieldQuery("organism", [])])) == ""


def test_unknown_query_type_is_empty():
    assert build_term(None) == ""
    assert build_term("plain string") == ""


@pytest.mark.parametrize("term, expected", [
    ("SRR123456", "SRR123456[Accession]"),
    ("  ERX000001 ", "ERX000001[Accession]"),
    ("PRJNA123456", "PRJNA123456[Bioproject]"),
    ("SAMN12345678", "SAMN12345678[Biosample]"),
    ("SAMEA1234", "SAMEA1234[Biosample]"),
    ("Homo sapiens", "Homo sapiens"),
    ("SRR123456[Accession]", "SRR123456[Accession]"),
    ("SRR1", "SRR1"),
])
def test_optimize_term(term, expected):
    assert optimize_term(term) == expected


def test_optimize_blank_term_unchanged():
    assert optimize_term("") == ""
    assert optimize_term("   ") == "   "


def test_accession_pattern_requires_six_characters():
    assert not is_likely_accession("SRR12")
    assert is_likely_accession("SRR123")
    assert not is_likely_accession("srr123456")


def test_bioproject_and_biosample_patterns():
    assert is_likely_bioproject("PRJEB1234")
    assert not is_likely_bioproject("PRJX1234")
    assert is_likely_biosample("SAMD00012345")
    assert not is_likely_biosample("SAM12345")


def test_search_fields_catalogue():
    codes = [f.code for f in SEARCH_FIELDS]
    assert codes[0] == "search"
    assert set(codes) == {
        "search", "accession", "bioproject", "biosample",
        "organism", "library_strategy", "platform", "library_source",
    }
