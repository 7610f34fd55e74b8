import pytest
from bson import ObjectId
from datetime import datetime
from fastapi import HTTPException

from utils.serializers import serialize_doc, parse_object_id, success


def test_serialize_doc_renames_id_and_stringifies_refs():
    oid, ref = ObjectId(), ObjectId()
    when = datetime(2026, 3, 1)
    doc = {"_id": oid, "project_id": ref, "items": [{"_id": ref, "tags": [ref]}], "date": when, "__v": 0}
    assert serialize_doc(doc) == {
        "id": str(oid),
        "project_id": str(ref),
        "items": [{"id": str(ref), "tags": [str(ref)]}],
        "date": when,
    }


def test_parse_object_id_rejects_garbage():
    with pytest.raises(HTTPException) as exc:
        parse_object_id("not-an-id", "project ID")
    assert exc.value.status_code == 400
    assert exc.value.detail == "Invalid project ID format"


def test_parse_object_id_passes_through_object_ids():
    oid = ObjectId()
    assert parse_object_id(oid) is oid
    assert parse_object_id(str(oid)) == oid


def test_success_envelope():
    assert success() == {"success": True}
    assert success([], message="ok", count=0) == {"success": True, "message": "ok", "data": [], "count": 0}
