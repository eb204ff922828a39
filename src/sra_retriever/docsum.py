"""Decode E-utilities SRA DocSum blocks into Records.

An SRA ``esummary`` DocSum carries most of its metadata as escaped XML inside
``<Item Name="ExpXml">`` and ``<Item Name="Runs">``. Decoding is best-effort:
every optional field is extracted independently and a failure only degrades
that field to unset, recorded as a warning on the result.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

import xmltodict

from sra_retriever.models import LAYOUT_PAIRED, LAYOUT_SINGLE, Record

_EXP_XML_LISTS = ("STUDY_LINK", "SAMPLE_LINK")


@dataclass
class DecodeResult:
    record: Record
    warnings: List[str] = field(default_factory=list)


def decode_docsum(docsum: dict) -> DecodeResult:
    """Map one parsed ``DocSum`` element onto a new Record."""
    result = DecodeResult(record=Record())
    record = result.record

    uid = _first(docsum.get("Id"))
    if uid is not None:
        record.attributes["uid"] = _text(uid)

    for item in _as_list(docsum.get("Item")):
        if not isinstance(item, dict):
            continue
        name = item.get("@Name")
        if name is None:
            continue
        content = _text(item)

        if name == "ExpXml":
            result.warnings.extend(apply_exp_xml(record, content))
        elif name == "Runs":
            result.warnings.extend(apply_runs_xml(record, content))
        elif name in ("CreateDate", "UpdateDate"):
            parsed = parse_date(content)
            if parsed is None:
                result.warnings.append(f"{name}: unparsable date {content!r}")
            elif name == "CreateDate":
                record.submission_date = parsed
            else:
                record.publication_date = parsed
        else:
            record.attributes[name] = content

    return result


def unescape(payload: str) -> str:
    return (
        payload.replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&amp;", "&")
    )


def parse_date(text: str) -> Optional[datetime]:
    """Parse CreateDate/UpdateDate text, or return None."""
    text = (text or "").strip()
    if not text:
        return None
    if "/" in text:
        # slash format; a trailing time component is ignored
        try:
            return datetime.strptime(text.split()[0], "%Y/%m/%d")
        except ValueError:
            return None
    for fmt in ("%Y-%m-%d %H:%M", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def apply_exp_xml(record: Record, payload: str) -> List[str]:
    """Populate ``record`` from an ExpXml payload; return the warnings raised."""
    # The payload has several sibling top-level elements, so it needs a root.
    wrapped = f"<root>{unescape(payload)}</root>"
    try:
        root = xmltodict.parse(wrapped, force_list=_EXP_XML_LISTS)["root"] or {}
    except Exception as exc:
        return [f"ExpXml: unparsable payload ({exc})"]

    warnings = []
    for label, extractor in _EXP_XML_EXTRACTORS:
        try:
            extractor(record, root)
        except Exception as exc:
            warnings.append(f"ExpXml {label}: {exc}")
    return warnings


def apply_runs_xml(record: Record, payload: str) -> List[str]:
    """Take the run accession from a Runs payload; the first Run wins."""
    try:
        root = xmltodict.parse(f"<root>{unescape(payload)}</root>")["root"] or {}
    except Exception as exc:
        return [f"Runs: unparsable payload ({exc})"]

    if not isinstance(root, dict):
        return []

    runs = [child for value in root.values() for child in _as_list(value)]
    if not runs:
        return []
    run_acc = _attr(runs[0], "acc")
    if run_acc is not None:
        record.run = run_acc
        if record.accession is None:
            record.accession = run_acc
    return []


# --- ExpXml field extractors ---


def _extract_title(record: Record, root: dict) -> None:
    summary = _child(root, "Summary")
    if _has_child(summary, "Title"):
        record.title = _text(_child(summary, "Title"))


def _extract_platform(record: Record, root: dict) -> None:
    summary = _child(root, "Summary")
    if not _has_child(summary, "Platform"):
        return
    platform_el = _child(summary, "Platform")
    platform = _text(platform_el)
    model = _attr(platform_el, "instrument_model")
    if model is not None:
        platform = f"{model} ({platform})"
    record.platform = platform


def _extract_statistics(record: Record, root: dict) -> None:
    stats = _child(_child(root, "Summary"), "Statistics")
    spots = _attr(stats, "total_spots")
    bases = _attr(stats, "total_bases")
    errors = []
    for attr, value in (("total_spots", spots), ("total_bases", bases)):
        if value is None:
            continue
        try:
            setattr(record, attr, int(value))
        except ValueError:
            errors.append(f"{attr}={value!r}")
    if errors:
        raise ValueError("non-numeric statistics " + ", ".join(errors))


def _extract_organism(record: Record, root: dict) -> None:
    name = _attr(_child(root, "Organism"), "ScientificName")
    if name is not None:
        record.organism = name


def _extract_library(record: Record, root: dict) -> None:
    library = _child(root, "Library_descriptor")
    if library is None:
        return
    if _has_child(library, "LIBRARY_STRATEGY"):
        record.library_strategy = _text(_child(library, "LIBRARY_STRATEGY"))
    if _has_child(library, "LIBRARY_SOURCE"):
        record.library_source = _text(_child(library, "LIBRARY_SOURCE"))
    if _has_child(library, "LIBRARY_SELECTION"):
        record.library_selection = _text(_child(library, "LIBRARY_SELECTION"))

    if _has_child(library, "LIBRARY_LAYOUT"):
        layout = _child(library, "LIBRARY_LAYOUT")
        if _has_child(layout, LAYOUT_PAIRED):
            record.library_layout = LAYOUT_PAIRED
        elif _has_child(layout, LAYOUT_SINGLE):
            record.library_layout = LAYOUT_SINGLE


def _extract_accessions(record: Record, root: dict) -> None:
    for element, attr in (("Study", "study"), ("Sample", "sample"), ("Experiment", "experiment")):
        acc = _attr(_child(root, element), "acc")
        if acc is not None:
            setattr(record, attr, acc)


def _extract_center(record: Record, root: dict) -> None:
    center = _attr(_child(root, "Submitter"), "center_name")
    if center is not None:
        record.center_name = center


def _extract_bioproject(record: Record, root: dict) -> None:
    if _has_child(root, "Bioproject"):
        record.bioproject = _text(_child(root, "Bioproject"))
        return
    links = _child(_child(_child(root, "Study"), "DESCRIPTOR"), "STUDY_LINKS")
    found = _find_xref(links, "STUDY_LINK", "bioproject")
    if found is not None:
        record.bioproject = found


def _extract_biosample(record: Record, root: dict) -> None:
    if _has_child(root, "Biosample"):
        record.biosample = _text(_child(root, "Biosample"))
        return
    links = _child(_child(root, "Sample"), "SAMPLE_LINKS")
    found = _find_xref(links, "SAMPLE_LINK", "biosample")
    if found is not None:
        record.biosample = found


_EXP_XML_EXTRACTORS = [
    ("title", _extract_title),
    ("platform", _extract_platform),
    ("statistics", _extract_statistics),
    ("organism", _extract_organism),
    ("library", _extract_library),
    ("accessions", _extract_accessions),
    ("center", _extract_center),
    ("bioproject", _extract_bioproject),
    ("biosample", _extract_biosample),
]


def _find_xref(links: Any, link_tag: str, database: str) -> Optional[str]:
    """Return the ID of the first LINK/XREF_LINK whose DB matches ``database``."""
    if not isinstance(links, dict):
        return None
    for link in _as_list(links.get(link_tag)):
        xref = _child(link, "XREF_LINK")
        if not _has_child(xref, "DB") or not _has_child(xref, "ID"):
            continue
        if _text(_child(xref, "DB")).lower() == database:
            return _text(_child(xref, "ID"))
    return None


# --- xmltodict navigation helpers ---


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _first(value: Any) -> Any:
    items = _as_list(value)
    return items[0] if items else None


def _has_child(node: Any, name: str) -> bool:
    return isinstance(node, dict) and name in node


def _child(node: Any, name: str) -> Any:
    if not isinstance(node, dict):
        return None
    return _first(node.get(name))


def _attr(node: Any, name: str) -> Optional[str]:
    if not isinstance(node, dict):
        return None
    return node.get("@" + name)


def _text(node: Any) -> str:
    if node is None:
        return ""
    if isinstance(node, dict):
        return node.get("#text") or ""
    return str(node)
