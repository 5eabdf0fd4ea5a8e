from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from app.stockflow.core.deps import get_current_actor, get_transfer_service
from app.stockflow.core.error_catalog import ErrorCatalog, ValidationFailedError
from app.stockflow.db.session import get_db
from app.stockflow.domain.transfer import TransferRequestSnapshot, TransferStatus
from app.stockflow.schemas.transfers import (
    ActivityLogEntryResponse,
    ReceiptIssueListResponse,
    ReceiptIssueResolveRequest,
    ReceiptIssueResponse,
    ReceiptListResponse,
    ReceiptResponse,
    ShipmentResponse,
    TransferActionRequest,
    TransferCreateRequest,
    TransferHistoryResponse,
    TransferLineAddRequest,
    TransferLineUpdateRequest,
    TransferListResponse,
    TransferResponse,
    TransferSummaryResponse,
    TransferUpdateRequest,
    ValidationIssueResponse,
)
from app.stockflow.services.idempotency import IdempotencyService, extract_idempotency_key
from app.stockflow.services.receiving import ReceiptIssueInput
from app.stockflow.services.transfers import NewTransferLine, TransferQuery
from app.stockflow.services.validator import ValidationResult


router = APIRouter()


def _start_idempotent(request: Request, db, actor_id: str, payload: dict):
    idempotency_key = extract_idempotency_key(request.headers, required=True)
    context, replay = IdempotencyService(db).start(
        actor_id=actor_id,
        endpoint=str(request.url.path),
        method=request.method,
        idempotency_key=idempotency_key,
        request_hash=IdempotencyService.fingerprint(payload),
    )
    if replay:
        return None, JSONResponse(
            status_code=replay.status_code,
            content=replay.response_body,
            headers={"X-Idempotency-Result": ErrorCatalog.IDEMPOTENCY_REPLAY.code},
        )
    request.state.idempotency = context
    return context, None


def _transfer_response(snapshot: TransferRequestSnapshot, warnings=()) -> TransferResponse:
    response = TransferResponse.model_validate(snapshot)
    response.warnings = [ValidationIssueResponse(**issue.as_dict()) for issue in warnings]
    return response


@router.get("/stockflow/transfers", response_model=TransferListResponse)
def list_transfers(
    status: TransferStatus | None = None,
    location_id: str | None = None,
    requesting_location_id: str | None = None,
    source_location_id: str | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    q: str | None = None,
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    query = TransferQuery(
        status=status,
        location_id=location_id,
        requesting_location_id=requesting_location_id,
        source_location_id=source_location_id,
        date_from=date_from,
        date_to=date_to,
        search_term=q,
        limit=limit,
        offset=offset,
    )
    rows = service.query(query)
    filters = service.build_filters(query)
    return TransferListResponse(
        rows=[TransferSummaryResponse.model_validate(row) for row in rows],
        total=service.count(query),
        limit=filters.limit,
        offset=filters.offset,
    )


@router.post("/stockflow/transfers", response_model=TransferResponse, status_code=201)
def create_transfer(
    request: Request,
    payload: TransferCreateRequest,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
    db=Depends(get_db),
):
    context, replay = _start_idempotent(request, db, actor.sub, payload.model_dump(mode="json"))
    if replay:
        return replay

    requesting_location_id = payload.requesting_location_id or actor.location_id
    if not requesting_location_id:
        result = ValidationResult()
        result.error(
            "REQUESTING_LOCATION_REQUIRED",
            "requesting_location_id is required when the token carries no location",
            field="requesting_location_id",
        )
        raise ValidationFailedError(result)

    snapshot = service.create_draft(
        requesting_location_id,
        payload.source_location_id,
        payload.source_location_type,
        [
            NewTransferLine(
                product_id=line.product_id,
                requested_quantity=line.requested_quantity,
                unit_cost=line.unit_cost,
                notes=line.notes,
            )
            for line in payload.lines
        ],
        actor.sub,
        priority=payload.priority,
        reason=payload.reason,
        requested_delivery_date=payload.requested_delivery_date,
        notes=payload.notes,
    )
    response = _transfer_response(snapshot)
    context.record_success(status_code=201, response_body=response.model_dump(mode="json"))
    return response


@router.get("/stockflow/transfers/{transfer_id}", response_model=TransferResponse)
def get_transfer_detail(
    transfer_id: str,
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    return _transfer_response(service.get(transfer_id))


@router.get("/stockflow/transfers/{transfer_id}/history", response_model=TransferHistoryResponse)
def get_transfer_history(
    transfer_id: str,
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    entries = service.history(transfer_id)
    return TransferHistoryResponse(
        transfer_request_id=transfer_id,
        rows=[ActivityLogEntryResponse.model_validate(entry) for entry in entries],
    )


@router.patch("/stockflow/transfers/{transfer_id}", response_model=TransferResponse)
def update_transfer(
    transfer_id: str,
    payload: TransferUpdateRequest,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    changes = payload.model_dump(exclude_unset=True, exclude={"expected_version"})
    snapshot = service.update_draft(transfer_id, actor.sub, changes, expected_version=payload.expected_version)
    return _transfer_response(snapshot)


@router.delete("/stockflow/transfers/{transfer_id}", status_code=204)
def delete_transfer(
    transfer_id: str,
    expected_version: int | None = None,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    service.delete_draft(transfer_id, actor.sub, expected_version=expected_version)
    return Response(status_code=204)


@router.post("/stockflow/transfers/{transfer_id}/lines", response_model=TransferResponse, status_code=201)
def add_transfer_line(
    transfer_id: str,
    payload: TransferLineAddRequest,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    snapshot = service.add_line(
        transfer_id,
        NewTransferLine(
            product_id=payload.product_id,
            requested_quantity=payload.requested_quantity,
            unit_cost=payload.unit_cost,
            notes=payload.notes,
        ),
        actor.sub,
        expected_version=payload.expected_version,
    )
    return _transfer_response(snapshot)


@router.patch("/stockflow/transfers/{transfer_id}/lines/{line_id}", response_model=TransferResponse)
def update_transfer_line(
    transfer_id: str,
    line_id: str,
    payload: TransferLineUpdateRequest,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    snapshot = service.update_line(
        transfer_id,
        line_id,
        actor.sub,
        requested_quantity=payload.requested_quantity,
        notes=payload.notes,
        expected_version=payload.expected_version,
    )
    return _transfer_response(snapshot)


@router.delete("/stockflow/transfers/{transfer_id}/lines/{line_id}", response_model=TransferResponse)
def remove_transfer_line(
    transfer_id: str,
    line_id: str,
    expected_version: int | None = None,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    return _transfer_response(service.remove_line(transfer_id, line_id, actor.sub, expected_version=expected_version))


@router.post("/stockflow/transfers/{transfer_id}/actions", response_model=TransferResponse)
def transfer_actions(
    transfer_id: str,
    request: Request,
    payload: TransferActionRequest,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
    db=Depends(get_db),
):
    context, replay = _start_idempotent(request, db, actor.sub, payload.model_dump(mode="json"))
    if replay:
        return replay

    action = payload.action
    warnings = ()
    if action == "submit":
        outcome = service.submit(transfer_id, actor.sub, expected_version=payload.expected_version)
        snapshot = outcome.request
        warnings = outcome.validation.warnings
    elif action == "approve":
        snapshot = service.approve(
            transfer_id,
            payload.quantities,
            actor.sub,
            payload.notes,
            expected_version=payload.expected_version,
            expected_delivery_date=payload.expected_delivery_date,
        )
    elif action == "reject":
        snapshot = service.reject(transfer_id, actor.sub, payload.reason, expected_version=payload.expected_version)
    elif action == "ship":
        snapshot = service.ship(
            transfer_id,
            payload.quantities,
            actor.sub,
            expected_version=payload.expected_version,
            carrier=payload.carrier,
            tracking_number=payload.tracking_number,
            package_count=payload.package_count,
            notes=payload.notes,
        )
    elif action == "receive":
        snapshot = service.receive(
            transfer_id,
            payload.quantities or {},
            actor.sub,
            payload.notes,
            idempotency_token=context.key,
            issues=[
                ReceiptIssueInput(
                    line_ref=issue.line,
                    issue_type=issue.issue_type,
                    quantity=issue.quantity,
                    description=issue.description,
                )
                for issue in payload.issues or []
            ],
            expected_version=payload.expected_version,
        )
    else:
        snapshot = service.cancel(transfer_id, actor.sub, payload.reason, expected_version=payload.expected_version)

    response = _transfer_response(snapshot, warnings)
    context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.get("/stockflow/transfers/{transfer_id}/shipment", response_model=ShipmentResponse)
def get_transfer_shipment(
    transfer_id: str,
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    return ShipmentResponse.model_validate(service.get_shipment(transfer_id))


@router.get("/stockflow/transfers/{transfer_id}/receipts", response_model=ReceiptListResponse)
def list_transfer_receipts(
    transfer_id: str,
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    receipts = service.list_receipts(transfer_id)
    return ReceiptListResponse(
        transfer_request_id=transfer_id,
        rows=[ReceiptResponse.model_validate(receipt) for receipt in receipts],
    )


@router.get("/stockflow/transfers/{transfer_id}/issues", response_model=ReceiptIssueListResponse)
def list_transfer_issues(
    transfer_id: str,
    unresolved: bool = False,
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    issues = service.list_issues(transfer_id, unresolved_only=unresolved)
    return ReceiptIssueListResponse(rows=[ReceiptIssueResponse.model_validate(issue) for issue in issues])


@router.post(
    "/stockflow/transfers/{transfer_id}/issues/{issue_id}/resolve",
    response_model=ReceiptIssueResponse,
)
def resolve_transfer_issue(
    transfer_id: str,
    issue_id: str,
    request: Request,
    payload: ReceiptIssueResolveRequest,
    actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
    db=Depends(get_db),
):
    context, replay = _start_idempotent(request, db, actor.sub, payload.model_dump(mode="json"))
    if replay:
        return replay

    issue = service.resolve_issue(transfer_id, issue_id, actor.sub, payload.resolution_notes)
    response = ReceiptIssueResponse.model_validate(issue)
    context.record_success(status_code=200, response_body=response.model_dump(mode="json"))
    return response


@router.get("/stockflow/issues", response_model=ReceiptIssueListResponse)
def list_unresolved_issues(
    location_id: str | None = None,
    _actor=Depends(get_current_actor),
    service=Depends(get_transfer_service),
):
    issues = service.list_unresolved_issues(location_id)
    return ReceiptIssueListResponse(rows=[ReceiptIssueResponse.model_validate(issue) for issue in issues])
