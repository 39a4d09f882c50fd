# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Occurrence service orchestrating recurring plans, cascading reschedules and
status changes over the MongoDB storage collaborator.

Multi-row writes (bulk creation and cascading shifts) go through the
storage batch operations, so a logical user action is either fully applied
or not applied at all.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, List, Optional, Union, Any
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from config import SchedulingConfig, load_scheduling_config
from models.entities import (
    Occurrence,
    TreatmentOccurrence,
    MedicationOccurrence,
    PaymentOccurrence,
    FinancialUnlockRequest,
    UserContext,
    occurrence_model
)
from models.enums import OccurrenceKind, PaymentStatus
from models.requests import (
    CreateOccurrencesRequest,
    CreateTreatmentsRequest,
    CreateMedicationsRequest,
    CreatePaymentsRequest,
    RescheduleRequest
)
from domain import lifecycle
from domain import authorization
from domain.authorization import AuthorizationResult, require_amount_edit
from domain.exceptions import (
    InvalidRange,
    OccurrenceNotFound,
    PaidAmountImmutable,
    SchedulingException
)
from domain.recurrence import expand
from domain.series import ShiftedOccurrence, find_subsequent, shift, day_delta, should_offer_cascade
from .clock import Clock, SystemClock
from .mongodb import MongoDBService, get_mongodb_service

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class ReschedulePreview:
    """What a date edit would do before it is confirmed."""
    occurrence: Occurrence
    new_date: date
    delta_days: int
    shifts: List[ShiftedOccurrence] = field(default_factory=list)
    cascade_offered: bool = False


@dataclass
class RescheduleResult:
    """Outcome of an applied date edit."""
    occurrence: Occurrence
    shifted: List[Occurrence] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return 1 + len(self.shifted)


class OccurrenceService:
    """Service for creating, rescheduling and transitioning occurrences."""

    def __init__(self, mongo_service: MongoDBService, clock: Clock = None,
                 config: SchedulingConfig = None):
        """Initialize occurrence service with storage and clock collaborators."""
        self.mongo_service = mongo_service
        self.config = config or load_scheduling_config()
        self.clock = clock or SystemClock(self.config.timezone)
        logger.info("Occurrence service initialized")

    # Creation

    def create_treatments(self, request: CreateTreatmentsRequest,
                          user_context: UserContext) -> List[TreatmentOccurrence]:
        """Create one treatment or a recurring treatment series."""
        def build(occurrence_date: date) -> TreatmentOccurrence:
            return TreatmentOccurrence(
                **self._stamps(user_context),
                subject_id=request.subject_id,
                occurrence_date=occurrence_date,
                status=request.status,
                notes=request.notes
            )

        return self._materialize(OccurrenceKind.TREATMENT, request, user_context, build)

    def create_medications(self, request: CreateMedicationsRequest,
                           user_context: UserContext) -> List[MedicationOccurrence]:
        """Create one medication entry or a recurring medication series."""
        def build(occurrence_date: date) -> MedicationOccurrence:
            return MedicationOccurrence(
                **self._stamps(user_context),
                subject_id=request.subject_id,
                occurrence_date=occurrence_date,
                medication_name=request.medication_name,
                dosage=request.dosage,
                frequency_label=request.frequency_label,
                end_date=request.end_date,
                notes=request.notes
            )

        return self._materialize(OccurrenceKind.MEDICATION, request, user_context, build)

    def create_payments(self, request: CreatePaymentsRequest, user_context: UserContext,
                        amount_edit_allowed: bool) -> List[PaymentOccurrence]:
        """
        Create one charge or a recurring series of charges.

        Raises:
            FinancialEditNotAllowed: If the caller does not hold the privilege
        """
        require_amount_edit(amount_edit_allowed)
        today = self.clock.today()

        def build(occurrence_date: date) -> PaymentOccurrence:
            paid = request.status == PaymentStatus.PAID
            return PaymentOccurrence(
                **self._stamps(user_context),
                subject_id=request.subject_id,
                occurrence_date=occurrence_date,
                amount=request.amount,
                description=request.description,
                status=request.status,
                paid_date=today if paid else None,
                notes=request.notes
            )

        created = self._materialize(OccurrenceKind.PAYMENT, request, user_context, build)
        return lifecycle.present_payments(created, today)

    def _materialize(self, kind: OccurrenceKind, request: CreateOccurrencesRequest,
                     user_context: UserContext,
                     build: Callable[[date], Occurrence]) -> List[Occurrence]:
        with tracer.start_as_current_span("occurrences.create") as span:
            span.set_attributes({
                "occurrence.kind": kind.value,
                "occurrence.recurring": request.recurrence is not None,
                "organization.id": user_context.org_id
            })

            try:
                plan = request.plan()
                if plan is None:
                    dates = [request.occurrence_date]
                else:
                    if plan.is_empty_range():
                        raise InvalidRange(plan.start_date, plan.end_date)
                    dates = expand(plan.start_date, plan.end_date, plan.cadence)

                occurrences = [build(occurrence_date) for occurrence_date in dates]
                span.set_attribute("occurrence.count", len(occurrences))

                self.mongo_service.create_many(
                    self._collection(kind),
                    [occurrence.to_document() for occurrence in occurrences],
                    user_context.user_id
                )

            except SchedulingException as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, e.message))
                logger.warning(
                    f"Cannot create {kind.value} occurrences: {e.message}",
                    extra={"error_type": e.error_type, "subject_id": request.subject_id}
                )
                raise

            span.set_status(Status(StatusCode.OK))
            logger.info(
                f"Created {len(occurrences)} {kind.value} occurrences",
                extra={"subject_id": request.subject_id, "user_id": user_context.user_id}
            )
            return occurrences

    # Reads

    def get(self, kind: OccurrenceKind, occurrence_id: str,
            user_context: UserContext) -> Occurrence:
        """Fetch one occurrence as presented to staff."""
        return self._present(kind, [self._load(kind, occurrence_id, user_context)])[0]

    def list_for_subject(self, kind: OccurrenceKind, subject_id: str,
                         user_context: UserContext) -> List[Occurrence]:
        """List a patient's occurrences, ascending by date."""
        documents = self.mongo_service.list_by_subject(
            self._collection(kind), user_context.org_id, subject_id
        )
        return self._present(kind, self._hydrate(kind, documents))

    def list_all(self, kind: OccurrenceKind, user_context: UserContext) -> List[Occurrence]:
        """List every occurrence of a kind in the organization, ascending by date."""
        documents = self.mongo_service.find_by_org(self._collection(kind), user_context.org_id)
        return self._present(kind, self._hydrate(kind, documents))

    def payment_summary(self, user_context: UserContext,
                        subject_id: Optional[str] = None) -> lifecycle.PaymentSummary:
        """Totals of pending, overdue and paid charges."""
        collection = self._collection(OccurrenceKind.PAYMENT)
        if subject_id:
            documents = self.mongo_service.list_by_subject(collection, user_context.org_id, subject_id)
        else:
            documents = self.mongo_service.find_by_org(collection, user_context.org_id)
        payments = self._hydrate(OccurrenceKind.PAYMENT, documents)
        return lifecycle.summarize_payments(payments, self.clock.today())

    # Rescheduling

    def preview_reschedule(self, kind: OccurrenceKind, occurrence_id: str, new_date: date,
                           user_context: UserContext) -> ReschedulePreview:
        """Compute the delta and the siblings a cascading edit would move."""
        edited = self._load(kind, occurrence_id, user_context)
        siblings = self._siblings(edited, user_context)

        delta = day_delta(edited.occurrence_date, new_date)
        offered = should_offer_cascade(edited, new_date, siblings)
        return ReschedulePreview(
            occurrence=edited,
            new_date=new_date,
            delta_days=delta,
            shifts=shift(siblings, delta) if offered else [],
            cascade_offered=offered
        )

    def reschedule(self, kind: OccurrenceKind, occurrence_id: str, request: RescheduleRequest,
                   user_context: UserContext) -> RescheduleResult:
        """
        Move one occurrence and, when requested, its pending later siblings.

        The edited occurrence and every shifted sibling are written in a
        single all-or-nothing batch.

        Raises:
            OccurrenceNotFound: If the occurrence does not exist
            PartialWriteFailure: If the batch could not be applied
        """
        with tracer.start_as_current_span("occurrences.reschedule") as span:
            preview = self.preview_reschedule(kind, occurrence_id, request.new_date, user_context)
            cascade = request.cascade and preview.cascade_offered
            span.set_attributes({
                "occurrence.kind": OccurrenceKind(kind).value,
                "occurrence.id": occurrence_id,
                "cascade.delta_days": preview.delta_days,
                "cascade.applied": cascade
            })

            edited = preview.occurrence.model_copy(update={"occurrence_date": request.new_date})
            changes = {edited.id: {"occurrenceDate": request.new_date.isoformat()}}
            shifted = []
            if cascade:
                for moved in preview.shifts:
                    changes[moved.occurrence.id] = {"occurrenceDate": moved.new_date.isoformat()}
                    shifted.append(moved.occurrence.model_copy(update={"occurrence_date": moved.new_date}))

            try:
                self.mongo_service.update_many(
                    self._collection(kind), user_context.org_id, changes, user_context.user_id
                )
            except SchedulingException as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, e.message))
                raise

            span.set_attribute("occurrence.count", len(changes))
            span.set_status(Status(StatusCode.OK))
            logger.info(
                f"Rescheduled {OccurrenceKind(kind).value} occurrence {occurrence_id} by {preview.delta_days} day(s)",
                extra={"shifted": len(shifted), "user_id": user_context.user_id}
            )
            return RescheduleResult(occurrence=self._present(kind, [edited])[0], shifted=shifted)

    def _siblings(self, edited: Occurrence, user_context: UserContext) -> List[Occurrence]:
        documents = self.mongo_service.list_by_subject(
            self._collection(edited.kind), user_context.org_id, edited.subject_id
        )
        return find_subsequent(edited, self._hydrate(edited.kind, documents))

    # Status and amount changes

    def change_status(self, kind: OccurrenceKind, occurrence_id: str,
                      new_status: Union[Enum, str], user_context: UserContext) -> Occurrence:
        """
        Apply an explicit staff status change.

        Raises:
            InvalidStatus: If the status does not belong to the kind
            OccurrenceNotFound: If the occurrence does not exist
        """
        current = self._load(kind, occurrence_id, user_context)
        updated = lifecycle.transition(current, new_status, self.clock.today())
        self._persist(kind, current, updated, user_context)

        logger.info(
            f"Changed {OccurrenceKind(kind).value} occurrence {occurrence_id} status to {updated.status.value}",
            extra={"previous_status": current.status.value, "user_id": user_context.user_id}
        )
        return self._present(kind, [updated])[0]

    def update_payment_amount(self, occurrence_id: str, amount: Decimal, user_context: UserContext,
                              amount_edit_allowed: bool) -> PaymentOccurrence:
        """
        Change the amount of an unpaid charge.

        Raises:
            FinancialEditNotAllowed: If the caller does not hold the privilege
            PaidAmountImmutable: If the charge is already paid
        """
        require_amount_edit(amount_edit_allowed)
        current = self._load(OccurrenceKind.PAYMENT, occurrence_id, user_context)
        if current.status == PaymentStatus.PAID:
            raise PaidAmountImmutable(occurrence_id)

        data = current.model_dump()
        data["amount"] = amount
        updated = PaymentOccurrence.model_validate(data)
        self._persist(OccurrenceKind.PAYMENT, current, updated, user_context)
        return self._present(OccurrenceKind.PAYMENT, [updated])[0]

    def delete(self, kind: OccurrenceKind, occurrence_id: str, user_context: UserContext,
               amount_edit_allowed: bool = False) -> None:
        """
        Delete one occurrence. Siblings are never deleted with it.

        Raises:
            FinancialEditNotAllowed: If deleting a payment without the privilege
            OccurrenceNotFound: If the occurrence does not exist
        """
        if OccurrenceKind(kind) == OccurrenceKind.PAYMENT:
            require_amount_edit(amount_edit_allowed)

        if not self.mongo_service.delete_by_org(self._collection(kind), user_context.org_id, occurrence_id):
            raise OccurrenceNotFound(kind, occurrence_id)
        logger.info(f"Deleted {OccurrenceKind(kind).value} occurrence {occurrence_id}", extra={"user_id": user_context.user_id})

    # Financial unlock requests

    def request_financial_unlock(self, user_context: UserContext,
                                 reason: Optional[str] = None) -> FinancialUnlockRequest:
        """Record a pending request for the financial edit privilege."""
        unlock_request = FinancialUnlockRequest(
            **self._stamps(user_context),
            requested_by=user_context.user_id,
            reason=reason
        )
        self.mongo_service.create(
            self.config.unlock_requests_collection,
            unlock_request.to_document(),
            user_context.user_id
        )
        logger.info(f"Financial unlock requested by {user_context.user_id}")
        return unlock_request

    def review_financial_unlock(self, request_id: str, approve: bool,
                                approver: UserContext) -> FinancialUnlockRequest:
        """Approve (for the configured window) or deny an unlock request."""
        document = self.mongo_service.find_one_by_org(
            self.config.unlock_requests_collection, approver.org_id, request_id
        )
        if document is None:
            raise OccurrenceNotFound("financial unlock request", request_id)

        current = FinancialUnlockRequest.from_document(document)
        if approve:
            reviewed = authorization.approve_unlock_request(current, approver, self.clock.now(),
                                              self.config.unlock_window_hours)
        else:
            reviewed = authorization.deny_unlock_request(current, approver)

        updates = reviewed.to_document()
        updates.pop("_id", None)
        self.mongo_service.update_by_org(
            self.config.unlock_requests_collection, approver.org_id, request_id,
            updates, approver.user_id
        )
        logger.info(f"Financial unlock request {request_id} {reviewed.status.value} by {approver.user_id}")
        return reviewed

    def check_amount_edit(self, user_context: UserContext) -> AuthorizationResult:
        """Evaluate the acting user's financial edit privilege right now."""
        documents = self.mongo_service.find_by_org(
            self.config.unlock_requests_collection, user_context.org_id,
            {"requestedBy": user_context.user_id}
        )
        requests = [FinancialUnlockRequest.from_document(doc) for doc in documents]
        return authorization.check_amount_edit(user_context, requests, self.clock.now())

    # Helpers

    def _collection(self, kind: OccurrenceKind) -> str:
        return self.config.collection_for(kind)

    def _load(self, kind: OccurrenceKind, occurrence_id: str,
              user_context: UserContext) -> Occurrence:
        document = self.mongo_service.find_one_by_org(
            self._collection(kind), user_context.org_id, occurrence_id
        )
        if document is None:
            raise OccurrenceNotFound(kind, occurrence_id)
        return occurrence_model(kind).from_document(document)

    def _hydrate(self, kind: OccurrenceKind, documents: List[Dict[str, Any]]) -> List[Occurrence]:
        model = occurrence_model(kind)
        return [model.from_document(document) for document in documents]

    def _present(self, kind: OccurrenceKind, occurrences: List[Occurrence]) -> List[Occurrence]:
        if OccurrenceKind(kind) == OccurrenceKind.PAYMENT:
            return lifecycle.present_payments(occurrences, self.clock.today())
        return occurrences

    def _persist(self, kind: OccurrenceKind, current: Occurrence, updated: Occurrence,
                 user_context: UserContext) -> None:
        before = current.to_document()
        changes = {
            key: value for key, value in updated.to_document().items()
            if key != "_id" and before.get(key) != value
        }
        if not changes:
            return
        if not self.mongo_service.update_by_org(self._collection(kind), user_context.org_id,
                                                current.id, changes, user_context.user_id):
            raise OccurrenceNotFound(kind, current.id)

    @staticmethod
    def _stamps(user_context: UserContext) -> Dict[str, str]:
        return {
            "organization_id": user_context.org_id,
            "created_by": user_context.user_id,
            "updated_by": user_context.user_id
        }


def create_occurrence_service(config: Optional[SchedulingConfig] = None) -> OccurrenceService:
    """
    Factory function to create the occurrence service.

    Args:
        config: Scheduling configuration, loaded from the environment when omitted

    Returns:
        OccurrenceService: Service bound to the shared MongoDB service and system clock
    """
    config = config or load_scheduling_config()
    mongo_service = get_mongodb_service(use_transactions=config.use_transactions)
    return OccurrenceService(mongo_service, SystemClock(config.timezone), config)

