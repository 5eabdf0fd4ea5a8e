from __future__ import annotations

from app.stockflow.core.error_catalog import ValidationFailedError
from app.stockflow.domain.transfer import GOODS_IN_MOTION_STATUSES, ReservationStatus, TransferStatus
from app.stockflow.services.validator import REASON_REQUIRED, ValidationResult
from app.stockflow.services.workflow import WorkflowStep


class CancellationGuard(WorkflowStep):
    def cancel(
        self,
        request_id,
        actor_id: str,
        reason: str | None = None,
        *,
        expected_version: int | None = None,
    ):
        reason = reason.strip() if reason else None

        def step(transfer):
            self.require_transition(transfer, TransferStatus.CANCELLED)
            if TransferStatus(transfer.status) in GOODS_IN_MOTION_STATUSES and not reason:
                result = ValidationResult()
                result.error(
                    REASON_REQUIRED,
                    "A reason is required to cancel a request whose goods have shipped",
                    field="reason",
                )
                raise ValidationFailedError(result)

            released = []
            for reservation in self.reservations.list_active(transfer.id):
                self.inventory.release_reservation(
                    reservation.location_id, reservation.product_id, reservation.quantity
                )
                self.reservations.complete(reservation, ReservationStatus.RELEASED.value)
                released.append({"product_id": reservation.product_id, "quantity": reservation.quantity})

            transfer.cancelled_at = self.clock()
            transfer.cancelled_by = actor_id
            transfer.cancellation_reason = reason
            return self.set_status(
                transfer,
                TransferStatus.CANCELLED,
                actor_id=actor_id,
                note=reason,
                details={"released_reservations": released},
            )

        return self.run(request_id, step, expected_version=expected_version)
