"""Tests for the upload wizard's KML and tabular flows."""

import asyncio

import httpx
import pytest

from mapper.errors import (
    EmptyFileError,
    FileTooLargeError,
    InvalidKmlError,
    TooManyRowsError,
    UnsupportedFileTypeError,
)
from mapper.geocoding.service import GeocodingService
from mapper.layers.parsers.kml import parse_kml
from mapper.upload.wizard import UploadWizard

KML = """<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <Placemark><name>A</name><Point><coordinates>-46.6,-23.5,0</coordinates></Point></Placemark>
    <Placemark><name>B</name><Point><coordinates>-43.2,-22.9,0</coordinates></Point></Placemark>
  </Document>
</kml>"""

CSV = "Nome,Endereço,Cidade\nPainel 1,Av. Paulista 1000,São Paulo\nPainel 2,Lugar Nenhum,Xyz\nPainel 3,Av. Atlântica 500,Rio de Janeiro\n"


def _respond(request: httpx.Request) -> httpx.Response:
    query = request.url.params["q"]
    if "Nenhum" in query:
        return httpx.Response(200, json=[])
    if "Paulista" in query:
        return httpx.Response(200, json=[{"lat": "-23.56", "lon": "-46.65", "display_name": "Paulista"}])
    return httpx.Response(200, json=[{"lat": "-22.97", "lon": "-43.18", "display_name": "Atlântica"}])


@pytest.fixture
def geocoder():
    client = httpx.AsyncClient(transport=httpx.MockTransport(_respond))
    return GeocodingService(client=client, min_interval=0)


@pytest.fixture
def wizard(layer_service, geocoder):
    return UploadWizard(layer_service, geocoder, max_file_size=4096, max_rows=3)


@pytest.mark.unit
class TestKmlUpload:

    def test_stores_as_is(self, wizard, layer_service):
        outcome = asyncio.run(wizard.run("proj-1", "Painéis SP.kml", KML))
        assert outcome.file_name == "Painéis_SP.kml"
        assert outcome.point_count == 2
        assert outcome.failed_rows == 0
        assert asyncio.run(layer_service.read_kml("proj-1", outcome.layer_id)) == KML

    def test_point_count_in_listing(self, wizard, layer_service):
        asyncio.run(wizard.run("proj-1", "pontos.kml", KML.encode("utf-8")))
        (layer,) = asyncio.run(layer_service.list_layers("proj-1")).layers
        assert layer.point_count == 2

    def test_extension_case_insensitive(self, wizard):
        assert asyncio.run(wizard.run("proj-1", "PONTOS.KML", KML)).file_name == "PONTOS.kml"

    def test_invalid_kml(self, wizard):
        with pytest.raises(InvalidKmlError):
            asyncio.run(wizard.run("proj-1", "vazio.kml", "<kml><Document/></kml>"))

    def test_malformed_kml(self, wizard):
        with pytest.raises(InvalidKmlError):
            asyncio.run(wizard.run("proj-1", "ruim.kml", "<kml><Placemark>"))

    def test_not_utf8(self, wizard):
        with pytest.raises(InvalidKmlError):
            asyncio.run(wizard.run("proj-1", "bin.kml", b"\xff\xfe\x00"))


@pytest.mark.unit
class TestTabularUpload:

    def test_geocodes_and_builds_layer(self, wizard, layer_service):
        progress = []
        outcome = asyncio.run(wizard.run(
            "proj-1", "paineis.csv", CSV, on_progress=lambda done, total: progress.append(done),
        ))
        assert outcome.point_count == 2
        assert outcome.failed_rows == 1
        assert outcome.file_name == "paineis.kml"
        assert progress == [1, 2, 3]

        kml = asyncio.run(layer_service.read_kml("proj-1", outcome.layer_id))
        features = parse_kml(kml).features
        assert [f.properties["name"] for f in features] == ["Painel 1", "Painel 3"]
        assert features[0].coordinates == [-46.65, -23.56]
        assert features[0].properties["city"] == "São Paulo"
        assert "success" not in features[0].properties

    def test_provided_coordinates_skip_geocoding(self, layer_service):
        def fail(request):
            raise AssertionError("provider must not be called")

        geocoder = GeocodingService(client=httpx.AsyncClient(transport=httpx.MockTransport(fail)))
        wizard = UploadWizard(layer_service, geocoder)
        csv_text = "Nome,Latitude,Longitude\nPonto,-23.5,-46.6\n"
        outcome = asyncio.run(wizard.run("proj-1", "coords.csv", csv_text))
        assert outcome.point_count == 1

    def test_confirm_mapping_overrides(self, wizard, layer_service):
        seen = {}

        async def confirm(table, mapping):
            seen["headers"] = table.headers
            seen["mapping"] = dict(mapping)
            return {"Endereço": "address"}

        outcome = asyncio.run(wizard.run("proj-1", "p.csv", CSV, confirm_mapping=confirm))
        assert seen["headers"] == ["Nome", "Endereço", "Cidade"]
        assert seen["mapping"] == {"Nome": "label", "Endereço": "address", "Cidade": "city"}
        kml = asyncio.run(layer_service.read_kml("proj-1", outcome.layer_id))
        assert "Painel 1" not in kml

    def test_bom_is_stripped(self, wizard):
        data = ("\ufeff" + CSV).encode("utf-8")
        assert asyncio.run(wizard.run("proj-1", "bom.csv", data)).point_count == 2

    def test_all_rows_failing_still_uploads(self, wizard):
        csv_text = "Endereço\nLugar Nenhum\n"
        outcome = asyncio.run(wizard.run("proj-1", "falha.csv", csv_text))
        assert outcome.point_count == 0
        assert outcome.failed_rows == 1

    def test_header_only(self, wizard):
        with pytest.raises(EmptyFileError):
            asyncio.run(wizard.run("proj-1", "h.csv", "Nome,Endereço\n"))

    def test_empty(self, wizard):
        with pytest.raises(EmptyFileError):
            asyncio.run(wizard.run("proj-1", "e.csv", ""))

    def test_too_many_rows(self, wizard):
        csv_text = "Endereço\n" + "".join(f"Rua {i}\n" for i in range(4))
        with pytest.raises(TooManyRowsError) as exc:
            asyncio.run(wizard.run("proj-1", "big.csv", csv_text))
        assert exc.value.rows == 4

    def test_binary_spreadsheet_rejected(self, wizard):
        with pytest.raises(UnsupportedFileTypeError):
            asyncio.run(wizard.run("proj-1", "planilha.xlsx", b"PK\x03\x04\xff\xfe"))


@pytest.mark.unit
class TestUploadLimits:

    def test_too_large_checked_first(self, wizard):
        with pytest.raises(FileTooLargeError) as exc:
            asyncio.run(wizard.run("proj-1", "big.pdf", b"x" * 5000))
        assert exc.value.limit == 4096

    def test_unsupported_extension(self, wizard):
        with pytest.raises(UnsupportedFileTypeError):
            asyncio.run(wizard.run("proj-1", "doc.pdf", b"%PDF"))

    def test_no_extension(self, wizard):
        with pytest.raises(UnsupportedFileTypeError):
            asyncio.run(wizard.run("proj-1", "README", b"text"))
