"""
Response mapping helpers.

Stored documents use ObjectId keys and references; the API only ever exposes
string ids under ``id``. Every route passes documents through ``serialize_doc``
before returning them.
"""
from typing import Any, Dict, Iterable, List, Optional
from bson import ObjectId
from fastapi import HTTPException


def serialize_doc(data: Any) -> Any:
    """Recursively rename ``_id`` to ``id`` and stringify ObjectIds."""
    if isinstance(data, list):
        return [serialize_doc(item) for item in data]
    if isinstance(data, dict):
        out = {}
        for k, v in data.items():
            if k == "_id":
                out["id"] = str(v) if isinstance(v, ObjectId) else v
            elif k == "__v":
                continue
            else:
                out[k] = serialize_doc(v)
        return out
    if isinstance(data, ObjectId):
        return str(data)
    return data


def parse_object_id(value: Any, label: str = "ID") -> ObjectId:
    """Turn a path/body id into an ObjectId or fail with 400."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise HTTPException(status_code=400, detail=f"Invalid {label} format")
    return ObjectId(value)


def parse_object_ids(values: Optional[Iterable[Any]], label: str = "ID") -> List[ObjectId]:
    return [parse_object_id(v, label) for v in (values or [])]


async def populate_names(
    docs: List[Dict],
    field: str,
    collection,
    target: str,
    default: Optional[str] = None,
    name_field: str = "name",
) -> List[Dict]:
    """
    Resolve ``doc[field]`` references to display names in one ``$in`` query
    and store them under ``doc[target]``.
    """
    ids = {doc.get(field) for doc in docs if isinstance(doc.get(field), ObjectId)}
    names: Dict[ObjectId, str] = {}
    if ids:
        cursor = collection.find({"_id": {"$in": list(ids)}}, {name_field: 1})
        async for ref in cursor:
            names[ref["_id"]] = ref.get(name_field)
    for doc in docs:
        doc[target] = names.get(doc.get(field), default)
    return docs


def success(data: Any = None, message: Optional[str] = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = serialize_doc(data)
    body.update(extra)
    return body
