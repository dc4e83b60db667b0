from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from azure.ai.documentintelligence.models import DocumentAnalysisFeature, DocumentField, DocumentFieldType
from azure.core.exceptions import HttpResponseError

from app.extraction.analysis_client import (
    LAYOUT_MODEL,
    AnalysisError,
    DocumentAnalyzer,
    convert_field,
    convert_result,
)
from app.extraction.schemas import (
    BooleanField,
    ListField,
    MapField,
    NumberField,
    OtherField,
    SelectionMarkField,
    SignatureField,
    StringField,
)

URL = "https://acct.blob.core.windows.net/intake/form.pdf"


def _sdk_field(type_: str, content: str | None = None, **values):
    return SimpleNamespace(type=type_, content=content, **values)


# =========================================================================
# SDK -> schema conversion
# =========================================================================


class TestConvertField:
    def test_scalar_kinds(self):
        assert convert_field(_sdk_field("string", "Al", value_string="Alice")) == StringField(content="Al", value="Alice")
        assert isinstance(convert_field(_sdk_field("boolean", value_boolean=True)), BooleanField)
        assert convert_field(_sdk_field("number", value_number=2.5)).value == 2.5
        assert convert_field(_sdk_field("integer", value_integer=7)) == NumberField(value=7)

    def test_marks(self):
        mark = convert_field(_sdk_field("selectionMark", ":selected:", value_selection_mark="selected"))
        assert mark == SelectionMarkField(content=":selected:", state="selected")
        sig = convert_field(_sdk_field("signature", value_signature="unsigned"))
        assert sig == SignatureField(state="unsigned")

    def test_enum_type_values_are_unwrapped(self):
        field = _sdk_field(DocumentFieldType.STRING, value_string="x")
        assert convert_field(field) == StringField(value="x")

    def test_nested_list_of_maps(self):
        row = _sdk_field("object", value_object={"Qty": _sdk_field("string", "2", value_string="2")})
        table = convert_field(_sdk_field("array", value_array=[row]))
        assert isinstance(table, ListField)
        assert isinstance(table.items[0], MapField)
        assert table.items[0].entries["Qty"].value == "2"

    def test_unknown_kinds_become_other(self):
        out = convert_field(_sdk_field("date", "01/05/2024", value_date="2024-01-05"))
        assert out == OtherField(content="01/05/2024", field_type="date")

    def test_real_sdk_field(self):
        field = DocumentField(type=DocumentFieldType.STRING, value_string="Alice", content="Alice")
        assert convert_field(field) == StringField(content="Alice", value="Alice")


def test_convert_result_collects_pages_tables_pairs_and_documents():
    raw = SimpleNamespace(
        model_id="intake",
        pages=[object(), object(), object()],
        tables=[
            SimpleNamespace(
                cells=[
                    SimpleNamespace(row_index=0, column_index=0, content="A"),
                    SimpleNamespace(row_index=1, column_index=0, content=None),
                ],
            )
        ],
        key_value_pairs=[
            SimpleNamespace(key=SimpleNamespace(content="Name:"), value=SimpleNamespace(content="Alice")),
            SimpleNamespace(key=SimpleNamespace(content="Phone:"), value=None),
        ],
        documents=[SimpleNamespace(doc_type="intake:intake", fields={"Name": _sdk_field("string", value_string="Alice")})],
    )
    result = convert_result(raw)
    assert result.model_id == "intake"
    assert result.page_count == 3
    assert [c.content for c in result.tables[0].cells] == ["A", ""]
    assert [(p.key, p.value) for p in result.key_value_pairs] == [("Name:", "Alice"), ("Phone:", None)]
    assert result.documents[0].doc_type == "intake:intake"
    assert result.documents[0].fields["Name"] == StringField(value="Alice")


def test_convert_result_tolerates_missing_sections():
    result = convert_result(SimpleNamespace(pages=None, tables=None, key_value_pairs=None, documents=None))
    assert result.page_count == 0
    assert result.tables == [] and result.key_value_pairs == [] and result.documents == []


# =========================================================================
# DocumentAnalyzer
# =========================================================================


class _FakePoller:
    def __init__(self, result):
        self._result = result

    async def result(self):
        return self._result


class _FakeClient:
    def __init__(self, result=None, error: Exception | None = None, delay: float = 0.0):
        self.result = result
        self.error = error
        self.delay = delay
        self.calls: list[tuple] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False

    async def begin_analyze_document(self, model_id, request, **kwargs):
        self.calls.append((model_id, request, kwargs))
        if self.error is not None:
            raise self.error
        if self.delay:
            await asyncio.sleep(self.delay)
        return _FakePoller(self.result)


def _analyzer(monkeypatch, client: _FakeClient, timeout: float | None = None) -> DocumentAnalyzer:
    analyzer = DocumentAnalyzer("https://di.example.com/", "secret", timeout=timeout)
    monkeypatch.setattr(analyzer, "_client", lambda: client)
    return analyzer


def test_requires_endpoint_and_key():
    with pytest.raises(RuntimeError):
        DocumentAnalyzer("", "secret")


def test_analyze_layout_counts_pages(monkeypatch):
    client = _FakeClient(SimpleNamespace(pages=[1, 2]))
    analyzer = _analyzer(monkeypatch, client)
    assert asyncio.run(analyzer.analyze_layout(URL)) == 2
    model_id, request, kwargs = client.calls[0]
    assert model_id == LAYOUT_MODEL
    assert request.url_source == URL
    assert kwargs["pages"] is None


def test_analyze_general_requests_key_value_pairs(monkeypatch):
    client = _FakeClient(SimpleNamespace(pages=[1]))
    asyncio.run(_analyzer(monkeypatch, client).analyze_general(URL))
    model_id, _, kwargs = client.calls[0]
    assert model_id == LAYOUT_MODEL
    assert kwargs["features"] == [DocumentAnalysisFeature.KEY_VALUE_PAIRS]


def test_analyze_custom_is_page_scoped(monkeypatch):
    client = _FakeClient(SimpleNamespace(pages=[1], documents=[]))
    asyncio.run(_analyzer(monkeypatch, client).analyze_custom(URL, "patient-intake", 3))
    model_id, _, kwargs = client.calls[0]
    assert model_id == "patient-intake"
    assert kwargs["pages"] == "3"


def test_sdk_errors_become_analysis_error(monkeypatch):
    client = _FakeClient(error=HttpResponseError(message="InvalidRequest"))
    with pytest.raises(AnalysisError) as exc_info:
        asyncio.run(_analyzer(monkeypatch, client).analyze_layout(URL))
    assert isinstance(exc_info.value.__cause__, HttpResponseError)


def test_empty_result_is_an_error(monkeypatch):
    with pytest.raises(AnalysisError):
        asyncio.run(_analyzer(monkeypatch, _FakeClient(result=None)).analyze_general(URL))


def test_timeout_is_an_analysis_error(monkeypatch):
    client = _FakeClient(SimpleNamespace(pages=[1]), delay=1.0)
    with pytest.raises(AnalysisError, match="analysis_timeout"):
        asyncio.run(_analyzer(monkeypatch, client, timeout=0.01).analyze_layout(URL))


def test_unreadable_result_is_an_analysis_error(monkeypatch):
    # A cell without row_index cannot be converted.
    raw = SimpleNamespace(pages=[1], tables=[SimpleNamespace(cells=[SimpleNamespace(content="A")])])
    with pytest.raises(AnalysisError, match="analysis_result_unreadable"):
        asyncio.run(_analyzer(monkeypatch, _FakeClient(raw)).analyze_general(URL))
