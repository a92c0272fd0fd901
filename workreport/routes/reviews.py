from __future__ import annotations

from typing import Any, Callable, TypeVar

from fastapi import APIRouter, HTTPException, Query

from workreport.application import ReviewSession, ReviewStateError, get_review_service
from workreport.core.confirmation import ConfirmationError
from workreport.core.schema import ListKind
from workreport.domain import FieldRef, SaveResult

router = APIRouter(prefix="/reviews", tags=["review"])

T = TypeVar("T")

CONFIRMATION_ACTIONS = {"request", "resolve", "edit", "select", "finalize", "cancel", "close-lookup"}


def _get_session(review_id: str) -> ReviewSession:
    session = get_review_service().get_review(review_id)
    if session is None:
        raise HTTPException(status_code=404, detail="review not found")
    return session


def _call(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    try:
        return func(*args, **kwargs)
    except (ConfirmationError, ReviewStateError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except (IndexError, KeyError) as exc:
        raise HTTPException(status_code=404, detail=f"unknown field or entry: {exc}") from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _field_ref(payload: dict[str, Any]) -> FieldRef:
    kind = payload.get("kind")
    if kind not in {"product", "packaging", "machine"}:
        raise HTTPException(status_code=400, detail="kind must be product, packaging or machine")
    index = payload.get("index")
    try:
        index = None if index is None else int(index)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    if index is not None and index < 0:
        raise HTTPException(status_code=404, detail=f"unknown field or entry: {index}")
    try:
        return FieldRef(kind, index)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _serialise_session(session: ReviewSession) -> dict[str, Any]:
    prompt = session.prompt
    error = session.master_data_error
    return {
        "review_id": session.review_id,
        "report": session.report.model_dump(mode="json"),
        "has_changes": session.has_changes,
        "can_undo": session.can_undo,
        "saving": session.saving,
        "closed": session.closed,
        "master_data": {
            "loading": session.master_data_loading,
            "products": sorted(session.master_data.products),
            "employees": sorted(session.master_data.employees),
            "error": error.to_dict() if error else None,
        },
        "highlights": sorted(({"kind": key.kind, "name": key.name} for key in session.highlights), key=lambda item: (item["kind"], item["name"])),
        "auto_open": sorted(field.key for field in session.auto_open),
        "prompt": {"field": prompt.field.key, "value": prompt.value} if prompt else None,
        "pending_duplicates": session.pending_duplicates.model_dump() if session.pending_duplicates else None,
        "pending_overwrite": session.pending_overwrite,
        "failed_workers": session.failed_workers,
    }


def _serialise_result(result: SaveResult) -> dict[str, Any]:
    block = result.block
    return {
        "status": result.status,
        "message": result.message,
        "block": {
            "reason": block.reason,
            "message": block.message,
            "fields": [field.key for field in block.fields],
            "duplicates": block.duplicates.model_dump() if block.duplicates else None,
        }
        if block
        else None,
        "existing_workers": result.existing_workers,
        "failed_workers": result.failed_workers,
        "period": result.period,
        "error_kind": result.error_kind,
    }


@router.post("")
async def create_review(payload: dict) -> dict:
    service = get_review_service()
    try:
        session = await service.open_review(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _serialise_session(session)


@router.get("")
async def list_reviews() -> dict:
    return {"items": get_review_service().list_reviews()}


@router.get("/{review_id}")
async def get_review(review_id: str) -> dict:
    return _serialise_session(_get_session(review_id))


@router.delete("/{review_id}")
async def close_review(review_id: str, confirm: bool = Query(default=False)) -> dict:
    _get_session(review_id)
    if not get_review_service().close_review(review_id, confirmed=confirm):
        raise HTTPException(status_code=409, detail="the review has unsaved changes")
    return {"review_id": review_id, "closed": True}


@router.post("/{review_id}/undo")
async def undo(review_id: str) -> dict:
    session = _get_session(review_id)
    undone = _call(session.undo)
    return {"undone": undone, "review": _serialise_session(session)}


@router.put("/{review_id}/header")
async def update_header(review_id: str, payload: dict) -> dict:
    session = _get_session(review_id)
    field = payload.get("field")
    if not field:
        raise HTTPException(status_code=400, detail="field is required")
    _call(session.update_header, field, payload.get("value"))
    return _serialise_session(session)


@router.post("/{review_id}/entries/{kind}")
async def add_entry(review_id: str, kind: ListKind, payload: dict | None = None) -> dict:
    session = _get_session(review_id)
    position = (payload or {}).get("position")
    if position is not None:
        position = _call(int, position)
    index = _call(session.add_entry, kind, position)
    return {"index": index, "review": _serialise_session(session)}


@router.put("/{review_id}/entries/{kind}/{index}")
async def update_entry(review_id: str, kind: ListKind, index: int, payload: dict) -> dict:
    session = _get_session(review_id)
    field = payload.get("field")
    if not field:
        raise HTTPException(status_code=400, detail="field is required")
    _call(session.update_entry, kind, index, field, payload.get("value"))
    return _serialise_session(session)


@router.delete("/{review_id}/entries/{kind}/{index}")
async def remove_entry(review_id: str, kind: ListKind, index: int) -> dict:
    session = _get_session(review_id)
    _call(session.remove_entry, kind, index)
    return _serialise_session(session)


@router.put("/{review_id}/entries/{kind}/{index}/breaks")
async def update_break(review_id: str, kind: ListKind, index: int, payload: dict) -> dict:
    session = _get_session(review_id)
    which = payload.get("break")
    if which not in {"lunch", "mid"}:
        raise HTTPException(status_code=400, detail="break must be lunch or mid")
    _call(session.update_break, kind, index, which, bool(payload.get("value")))
    return _serialise_session(session)


@router.post("/{review_id}/entries/{kind}/{index}/slots")
async def add_time_slot(review_id: str, kind: ListKind, index: int) -> dict:
    session = _get_session(review_id)
    _call(session.add_time_slot, kind, index)
    return _serialise_session(session)


@router.put("/{review_id}/entries/{kind}/{index}/slots/{slot_index}")
async def update_time_slot(review_id: str, kind: ListKind, index: int, slot_index: int, payload: dict) -> dict:
    session = _get_session(review_id)
    field = payload.get("field")
    if field not in {"start", "end"}:
        raise HTTPException(status_code=400, detail="field must be start or end")
    normalize = bool(payload.get("normalize", True))
    _call(session.update_time_slot, kind, index, slot_index, field, str(payload.get("value") or ""), normalize=normalize)
    return _serialise_session(session)


@router.delete("/{review_id}/entries/{kind}/{index}/slots/{slot_index}")
async def delete_time_slot(review_id: str, kind: ListKind, index: int, slot_index: int) -> dict:
    session = _get_session(review_id)
    _call(session.delete_time_slot, kind, index, slot_index)
    return _serialise_session(session)


@router.post("/{review_id}/confirmations/{action}")
async def confirmation_action(review_id: str, action: str, payload: dict | None = None) -> dict:
    if action not in CONFIRMATION_ACTIONS:
        raise HTTPException(status_code=404, detail="unknown confirmation action")
    session = _get_session(review_id)
    payload = payload or {}

    if action == "resolve":
        if "correct" not in payload:
            raise HTTPException(status_code=400, detail="correct is required")
        _call(session.resolve_prompt, bool(payload["correct"]))
        return _serialise_session(session)

    field = _field_ref(payload)
    if action == "request":
        _call(session.request_confirmation, field)
    elif action == "edit":
        _call(session.begin_correction, field)
    elif action == "select":
        _call(session.select_value, field, payload.get("value"))
    elif action == "finalize":
        _call(session.finalize, field)
    elif action == "cancel":
        _call(session.cancel_correction, field)
    else:
        session.close_lookup(field)
    response = _serialise_session(session)
    info = _call(session.correction_info, field)
    if info:
        response["correction"] = info
    return response


@router.post("/{review_id}/master-data/reload")
async def reload_master_data(review_id: str) -> dict:
    session = _get_session(review_id)
    await session.load_master_data()
    return _serialise_session(session)


@router.post("/{review_id}/master-data/reauthenticate")
async def reauthenticate_master_data(review_id: str) -> dict:
    session = _get_session(review_id)
    await session.reauthenticate()
    return _serialise_session(session)


@router.delete("/{review_id}/master-data/error")
async def dismiss_master_data_error(review_id: str) -> dict:
    session = _get_session(review_id)
    session.dismiss_master_data_error()
    return _serialise_session(session)


@router.post("/{review_id}/duplicates/acknowledge")
async def acknowledge_duplicates(review_id: str) -> dict:
    session = _get_session(review_id)
    session.acknowledge_duplicates()
    return _serialise_session(session)


def _save_response(review_id: str, session: ReviewSession, result: SaveResult) -> dict:
    body = _serialise_result(result)
    if result.status == "saved":
        get_review_service().discard_closed(review_id)
        body["review"] = None
    else:
        body["review"] = _serialise_session(session)
    return body


@router.post("/{review_id}/save")
async def save_review(review_id: str) -> dict:
    session = _get_session(review_id)
    try:
        result = await session.request_save()
    except ReviewStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _save_response(review_id, session, result)


@router.post("/{review_id}/save/overwrite")
async def resolve_overwrite(review_id: str, payload: dict) -> dict:
    session = _get_session(review_id)
    if not payload.get("confirm"):
        session.cancel_overwrite()
        return {"status": "cancelled", "review": _serialise_session(session)}
    try:
        result = await session.confirm_overwrite()
    except ReviewStateError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _save_response(review_id, session, result)
