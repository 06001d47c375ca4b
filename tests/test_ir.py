"""Tests for the IR models, merge and serialization."""

import json

from skillc.ir.models import (
    FileEntry,
    Group,
    IntermediateRepr,
    Operation,
    Parameter,
    ProjectStructure,
    Response,
    TypeDef,
    TypeField,
    TypeRef,
    ir_from_dict,
    ir_to_dict,
    ir_to_json,
)


def _api_ir() -> IntermediateRepr:
    return IntermediateRepr(
        operations=[
            Operation(
                id="getPet",
                method="GET",
                path="/pets/{petId}",
                parameters=[Parameter(name="petId", location="path", required=True, type="string")],
                responses=[
                    Response(status_code="200", description="A pet", body=TypeRef(type_name="Pet"))
                ],
            )
        ],
        types=[TypeDef(name="Pet", fields=[TypeField(name="id", type="integer", required=True)])],
        metadata={"title": "Petstore"},
    )


# --- Merge ---


def test_merge_appends_in_order():
    a = _api_ir()
    b = IntermediateRepr(
        operations=[Operation(id="kubectl_get", path="kubectl get")],
        groups=[Group(name="kubectl", operations=["kubectl_get"])],
    )
    a.merge(b)
    assert a.operation_ids() == ["getPet", "kubectl_get"]
    assert [g.name for g in a.groups] == ["kubectl"]
    assert a.type_names() == ["Pet"]


def test_merge_none_is_noop():
    a = _api_ir()
    before = ir_to_json(a)
    a.merge(None)
    assert ir_to_json(a) == before


def test_merge_metadata_later_wins():
    a = IntermediateRepr(metadata={"title": "one", "version": "1"})
    a.merge(IntermediateRepr(metadata={"title": "two"}))
    assert a.metadata == {"title": "two", "version": "1"}


def test_merge_keeps_duplicate_ids():
    a = IntermediateRepr(operations=[Operation(id="list")])
    a.merge(IntermediateRepr(operations=[Operation(id="list")]))
    assert a.operation_ids() == ["list", "list"]


def test_merge_structure_adopted_then_concatenated():
    a = IntermediateRepr()
    a.merge(IntermediateRepr(structure=ProjectStructure(file_tree=[FileEntry(path="a.go")])))
    assert a.structure is not None
    a.merge(IntermediateRepr(structure=ProjectStructure(file_tree=[FileEntry(path="b.go")])))
    assert [f.path for f in a.structure.file_tree] == ["a.go", "b.go"]


def test_merge_empty_into_empty():
    a = IntermediateRepr()
    a.merge(IntermediateRepr())
    assert a.operations == []
    assert a.structure is None


# --- Lookups ---


def test_find_helpers():
    ir = _api_ir()
    assert ir.find_operation("getPet").path == "/pets/{petId}"
    assert ir.find_operation("missing") is None
    assert ir.find_type("Pet").fields[0].name == "id"
    assert ir.find_type("Nope") is None


def test_parameters_in():
    op = Operation(
        id="x",
        parameters=[
            Parameter(name="a", location="query"),
            Parameter(name="b", location="path"),
            Parameter(name="c", location="query"),
        ],
    )
    assert [p.name for p in op.parameters_in("query")] == ["a", "c"]


def test_enum_typedef():
    assert TypeDef(name="Status", enum=["open", "closed"]).is_enum
    assert not TypeDef(name="Pet").is_enum


# --- Serialization ---


def test_wire_names_are_camel_case():
    data = ir_to_dict(
        IntermediateRepr(
            operations=[
                Operation(id="run", raw_help_text="usage", request_body=TypeRef(type_name="Body"))
            ]
        )
    )
    op = data["operations"][0]
    assert op["rawHelpText"] == "usage"
    assert op["requestBody"] == {"typeName": "Body"}


def test_parameter_location_serialized_as_in():
    data = ir_to_dict(_api_ir())
    param = data["operations"][0]["parameters"][0]
    assert param["in"] == "path"
    assert "location" not in param


def test_empty_fields_omitted():
    data = ir_to_dict(IntermediateRepr(operations=[Operation(id="x")]))
    assert data == {"operations": [{"id": "x", "name": "", "path": ""}]}


def test_json_is_deterministic():
    assert ir_to_json(_api_ir()) == ir_to_json(_api_ir())


def test_json_keeps_unicode():
    ir = IntermediateRepr(operations=[Operation(id="x", description="café")])
    assert "café" in ir_to_json(ir)


def test_from_dict_rebuilds_ir():
    original = _api_ir()
    rebuilt = ir_from_dict(json.loads(ir_to_json(original)))
    assert rebuilt == original
