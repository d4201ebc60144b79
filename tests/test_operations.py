"""Tests for copy, load and extract jobs and the client handles."""

import asyncio

import pytest
from conftest import job_resource

from warehouse_client import Client, Copier, ErrorKind, WarehouseError
from warehouse_client.operations import _Operation
from warehouse_client.types import (
    Compression,
    CopyOperation,
    CreateDisposition,
    DataFormat,
    FieldSchema,
    FieldType,
    GCSReference,
    JobKind,
    Schema,
    SchemaUpdateOption,
    TableRef,
    WriteDisposition,
)

DST = {"projectId": "proj", "datasetId": "d", "tableId": "dst"}


@pytest.fixture
def dataset(client):
    return client.dataset("d")


def test_client_handles(client):
    table = client.dataset_in_project("other", "d2").table("t")

    assert table.ref.fully_qualified_name == "other.d2.t"
    assert repr(table) == "Table('other.d2.t')"
    assert client.project_id == "proj"


def test_for_project_builds_params(transport):
    client = Client.for_project(transport, "p2", location="EU", page_size=50)

    assert client.params.project_id == "p2"
    assert client.params.location == "EU"
    assert client.params.page_size == 50


def test_copier_configuration(dataset):
    copier = dataset.table("dst").copier_from(dataset.table("a"), TableRef(project_id="x", dataset_id="y", table_id="z"))
    copier.write_disposition = WriteDisposition.WRITE_APPEND
    copier.operation_type = CopyOperation.SNAPSHOT
    copier.labels = {"k": "v"}

    assert copier.configuration() == {
        "copy": {
            "destinationTable": DST,
            "sourceTables": [
                {"projectId": "proj", "datasetId": "d", "tableId": "a"},
                {"projectId": "x", "datasetId": "y", "tableId": "z"},
            ],
            "operationType": "SNAPSHOT",
            "writeDisposition": "WRITE_APPEND",
        },
        "labels": {"k": "v"},
    }


def test_copier_needs_sources(transport, params):
    with pytest.raises(WarehouseError, match="at least one source") as info:
        Copier(transport, params, TableRef(project_id="p", dataset_id="d", table_id="t"), [])

    assert info.value.kind is ErrorKind.INVALID_INPUT


def test_operation_base_cannot_be_instantiated(transport, params):
    with pytest.raises(TypeError, match="abstract"):
        _Operation(transport, params)


def test_loader_configuration(dataset):
    source = GCSReference(uris=["gs://bucket/*.csv"], skip_leading_rows=1, max_bad_records=5, quote="'")
    loader = dataset.table("dst").loader_from(source)
    loader.schema = Schema(fields=(FieldSchema(name="a", type=FieldType.STRING),))
    loader.create_disposition = CreateDisposition.CREATE_NEVER
    loader.schema_update_options = [SchemaUpdateOption.ALLOW_FIELD_ADDITION]

    body = loader.configuration()["load"]

    assert body == {
        "sourceUris": ["gs://bucket/*.csv"],
        "sourceFormat": "CSV",
        "fieldDelimiter": ",",
        "skipLeadingRows": 1,
        "allowJaggedRows": False,
        "allowQuotedNewlines": False,
        "encoding": "UTF-8",
        "quote": "'",
        "maxBadRecords": 5,
        "destinationTable": DST,
        "schema": {"fields": [{"name": "a", "type": "STRING", "mode": "NULLABLE"}]},
        "createDisposition": "CREATE_NEVER",
        "schemaUpdateOptions": ["ALLOW_FIELD_ADDITION"],
    }


def test_loader_json_source_skips_csv_options(dataset):
    source = GCSReference(uris=["gs://b/x.json"], source_format=DataFormat.JSON, autodetect=True)

    body = dataset.table("dst").loader_from(source).configuration()["load"]

    assert body == {
        "sourceUris": ["gs://b/x.json"],
        "sourceFormat": "NEWLINE_DELIMITED_JSON",
        "autodetect": True,
        "destinationTable": DST,
    }


def test_extractor_configuration(dataset):
    dst = GCSReference(uris=["gs://bucket/out-*.csv.gz"], compression=Compression.GZIP, field_delimiter="\t")
    extractor = dataset.table("src").extractor_to(dst)
    extractor.disable_header = True

    assert extractor.configuration() == {
        "extract": {
            "destinationUris": ["gs://bucket/out-*.csv.gz"],
            "destinationFormat": "CSV",
            "fieldDelimiter": "\t",
            "compression": "GZIP",
            "sourceTable": {"projectId": "proj", "datasetId": "d", "tableId": "src"},
            "printHeader": False,
        }
    }


def test_run_submits_without_waiting(dataset, transport):
    extractor = dataset.table("src").extractor_to(GCSReference(uris=["gs://b/o"]))
    extractor.job_id = "export-1"
    transport.queue(job_resource("export-1", "RUNNING", kind="extract"))

    job = asyncio.run(extractor.run())

    assert len(transport.requests) == 1
    assert job.id == "export-1"
    assert job.kind is JobKind.EXTRACT
    assert not job.last_status.done
