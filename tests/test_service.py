import threading
from urllib.parse import parse_qs, urlparse

import pytest
import responses

from conftest import esearch_xml
from sra_retriever.binary import binary_name, platform_dir_name
from sra_retriever.config import ESEARCH_URL, ESUMMARY_URL, Settings
from sra_retriever.documents import SraDocument
from sra_retriever.errors import Cancelled
from sra_retriever.query import AND, BasicQuery, CompoundQuery, FieldQuery
from sra_retriever.service import SraService


@pytest.fixture
def service(client):
    with SraService(Settings(), client=client) as svc:
        yield svc


@responses.activate
def test_retrieve_wraps_records(service, esearch_payload, esummary_payload):
    responses.add(responses.GET, ESEARCH_URL, body=esearch_payload, status=200)
    responses.add(responses.GET, ESUMMARY_URL, body=esummary_payload, status=200)
    seen = []

    docs = service.retrieve(
        CompoundQuery(AND, [FieldQuery("organism", ["Homo sapiens"]), FieldQuery("platform", [""])]),
        callback=seen.append,
    )

    assert [d.name for d in docs] == ["SRR000001"]
    assert seen == docs
    assert docs[0].record.organism == "Homo sapiens"
    assert parse_qs(urlparse(responses.calls[0].request.url).query)["term"] == ["Homo sapiens[Organism]"]


@responses.activate
def test_retrieve_empty_query_makes_no_requests(service):
    assert service.retrieve(BasicQuery("   ")) == []
    assert service.retrieve(None) == []
    assert len(responses.calls) == 0


@responses.activate
def test_retrieve_cancelled(service):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(Cancelled):
        service.retrieve(BasicQuery("liver"), cancel_event=cancel)


@responses.activate
def test_lookup_unknown_accession(service):
    responses.add(responses.GET, ESEARCH_URL, body=esearch_xml([], count=0), status=200)
    doc = service.lookup("SRR999999")
    assert doc.record is None
    assert doc.name == "SRR999999"
    assert doc.accession == "SRR999999"


@responses.activate
def test_lookup_known_accession(service, esearch_payload, esummary_payload):
    responses.add(responses.GET, ESEARCH_URL, body=esearch_payload, status=200)
    responses.add(responses.GET, ESUMMARY_URL, body=esummary_payload, status=200)
    doc = service.lookup("SRR000001")
    assert doc.record.title == "RNA-seq of human liver"


def test_download_delegates_to_orchestrator(client, fake_fasterq_dump):
    settings = Settings(fasterq_dump=fake_fasterq_dump(mode="single", reads=2))
    with SraService(settings, client=client) as service:
        docs = service.download([SraDocument(name="SRR000009")])
    assert len(docs) == 1
    assert len(docs[0].sequences) == 2


def test_close_removes_extracted_binary(client, tmp_path):
    bundled = tmp_path / "binaries" / platform_dir_name() / binary_name()
    bundled.parent.mkdir(parents=True)
    bundled.write_text("#!/bin/sh\n")
    service = SraService(Settings(binaries_dir=tmp_path / "binaries"), client=client)
    extracted = service.resolver.get_binary()
    assert extracted.exists()

    service.close()
    assert not extracted.exists()
