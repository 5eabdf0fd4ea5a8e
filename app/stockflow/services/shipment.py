from __future__ import annotations

from app.stockflow.core.config import settings
from app.stockflow.core.error_catalog import InsufficientStockError, ValidationFailedError
from app.stockflow.db.models import TransferShipment
from app.stockflow.domain.transfer import ReservationStatus, TransferStatus
from app.stockflow.services.validator import (
    QUANTITY_EXCEEDS_APPROVED,
    QUANTITY_NEGATIVE,
    ValidationResult,
)
from app.stockflow.services.workflow import WorkflowStep


class ShipmentTracker(WorkflowStep):
    def ship(
        self,
        request_id,
        per_line_quantities: dict | None,
        actor_id: str,
        *,
        expected_version: int | None = None,
        carrier: str | None = None,
        tracking_number: str | None = None,
        package_count: int = 0,
        notes: str | None = None,
    ):
        def step(transfer):
            self.require_transition(transfer, TransferStatus.IN_TRANSIT)
            self.validate(transfer, TransferStatus.IN_TRANSIT)
            result = ValidationResult()
            overrides = self.resolve_lines(transfer, per_line_quantities, result)
            quantities = {}
            for line in transfer.lines:
                approved = line.approved_quantity or 0
                quantity = int(overrides.get(line.id, approved))
                if quantity < 0:
                    result.error(
                        QUANTITY_NEGATIVE,
                        "Shipped quantity cannot be negative",
                        line_no=line.line_no,
                        field="shipped_quantity",
                    )
                elif quantity > approved:
                    result.error(
                        QUANTITY_EXCEEDS_APPROVED,
                        f"Shipped quantity {quantity} exceeds approved quantity {approved}",
                        line_no=line.line_no,
                        field="shipped_quantity",
                    )
                quantities[line.id] = quantity
            if not result.ok:
                raise ValidationFailedError(result)

            shortages = []
            line_details = []
            for line in transfer.lines:
                quantity = quantities[line.id]
                reservation = self.reservations.get_for_line(line.id)
                reserved = 0
                if reservation is not None and reservation.status == ReservationStatus.ACTIVE.value:
                    reserved = reservation.quantity
                shipped = self.inventory.ship_from_reservation(
                    transfer.source_location_id, line.product_id, quantity, reserved
                )
                if not shipped:
                    shortages.append(
                        {
                            "line_no": line.line_no,
                            "product_id": line.product_id,
                            "location_id": transfer.source_location_id,
                            "shipped_quantity": quantity,
                        }
                    )
                    continue
                line.shipped_quantity = quantity
                if reserved:
                    self.reservations.complete(reservation, ReservationStatus.FULFILLED.value)
                line_details.append(
                    {
                        "line_no": line.line_no,
                        "approved_quantity": line.approved_quantity or 0,
                        "shipped_quantity": quantity,
                    }
                )
            if shortages:
                raise InsufficientStockError(shortages)

            now = self.clock()
            shipment = TransferShipment(
                transfer_request_id=transfer.id,
                shipment_number=self.next_document_number(settings.SHIPMENT_NUMBER_PREFIX),
                shipped_by=actor_id,
                carrier=carrier,
                tracking_number=tracking_number,
                package_count=package_count or 0,
                notes=notes,
                shipped_at=now,
            )
            self.transfers.add_shipment(shipment)
            transfer.shipped_at = now
            transfer.shipped_by = actor_id
            return self.set_status(
                transfer,
                TransferStatus.IN_TRANSIT,
                actor_id=actor_id,
                note=notes,
                details={"shipment_number": shipment.shipment_number, "lines": line_details},
            )

        return self.run(request_id, step, expected_version=expected_version)
