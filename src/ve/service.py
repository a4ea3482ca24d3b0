"""
Valuation service: stored valuations on top of the stateless engine.

Creates draft valuations, runs them through the engine and records the
result. Nothing is written when a calculation fails.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ve.exceptions import (
    FieldViolation,
    MethodMismatchError,
    ValidationError,
    ValuationAccessError,
    ValuationNotFoundError,
)
from ve.logging import get_logger, log_context
from ve.types import ValuationMethod, ValuationRecord, ValuationStatus
from ve.valuation.engine import calculate
from ve.valuation.results import ValuationResult
from ve.valuation.validation import validate_dcf_input, validate_multiples_input
from ve.workspace.store import ValuationStore

logger = get_logger(__name__)


class ValuationService:
    """Company valuations backed by a ValuationStore.

    Ownership is only checked when both the record and the call carry a
    user ID; authentication happens upstream.
    """

    def __init__(self, store: ValuationStore, default_projection_years: int = 5) -> None:
        self.store = store
        self.default_projection_years = default_projection_years

    def _validate(self, method: ValuationMethod, inputs: Mapping[str, Any]) -> None:
        if method == ValuationMethod.DCF:
            validate_dcf_input(inputs, default_projection_years=self.default_projection_years)
        else:
            validate_multiples_input(inputs)

    def _get_owned(self, valuation_id: str, user_id: int | None) -> ValuationRecord:
        record = self.store.get_valuation(valuation_id)
        if record is None:
            raise ValuationNotFoundError(
                "Valuation not found", context={"valuation_id": valuation_id}
            )
        if user_id is not None and record.user_id is not None and record.user_id != user_id:
            raise ValuationAccessError(
                "Not allowed to modify this valuation",
                context={"valuation_id": valuation_id, "user_id": user_id},
            )
        return record

    def create_valuation(
        self,
        company_id: int,
        method: ValuationMethod | str,
        inputs: Mapping[str, Any],
        notes: str | None = None,
        user_id: int | None = None,
    ) -> ValuationRecord:
        """Validate inputs and store a draft valuation.

        Raises:
            ValidationError: If the method is unknown or inputs are invalid.
        """
        method = _parse_method(method)
        self._validate(method, inputs)

        record = self.store.create_valuation(
            company_id, method, dict(inputs), notes=notes, user_id=user_id
        )
        with log_context(valuation_id=record.id, company_id=company_id, method=method.value):
            logger.info("Draft valuation created")
        return record

    def get_valuation(self, valuation_id: str) -> ValuationRecord:
        """Get a valuation.

        Raises:
            ValuationNotFoundError: If it does not exist.
        """
        return self._get_owned(valuation_id, None)

    def list_company_valuations(self, company_id: int) -> list[ValuationRecord]:
        """A company's valuations, newest first."""
        return self.store.list_company_valuations(company_id)

    def get_latest_company_valuation(self, company_id: int) -> ValuationRecord | None:
        """The company's most recent valuation, if any."""
        return self.store.get_latest_company_valuation(company_id)

    def update_valuation(
        self,
        valuation_id: str,
        *,
        user_id: int | None = None,
        inputs: Mapping[str, Any] | None = None,
        notes: str | None = None,
        status: ValuationStatus | str | None = None,
    ) -> ValuationRecord:
        """Edit a valuation's inputs, notes or status.

        New inputs are validated. Replacing the inputs of a completed
        valuation returns it to draft and clears its recorded values,
        unless a status is given.

        Raises:
            ValuationNotFoundError: If it does not exist.
            ValuationAccessError: If user_id does not own it.
            ValidationError: If inputs or status are invalid.
        """
        record = self._get_owned(valuation_id, user_id)

        fields: dict[str, Any] = {}
        if inputs is not None:
            self._validate(record.method, inputs)
            fields["inputs"] = dict(inputs)
            if record.is_completed and status is None:
                fields.update(
                    status=ValuationStatus.DRAFT,
                    enterprise_value=None,
                    equity_value=None,
                    sensitivity_data=None,
                    result=None,
                )
        if notes is not None:
            fields["notes"] = notes
        if status is not None:
            fields["status"] = _parse_status(status)

        if not fields:
            return record

        updated = self.store.update_valuation(valuation_id, **fields)
        if updated is None:
            raise ValuationNotFoundError(
                "Valuation not found", context={"valuation_id": valuation_id}
            )
        return updated

    def calculate(
        self,
        valuation_id: str,
        *,
        user_id: int | None = None,
        inputs: Mapping[str, Any] | None = None,
        method: ValuationMethod | str | None = None,
    ) -> ValuationResult:
        """Run a stored valuation and record its result.

        Args:
            valuation_id: The valuation to run.
            user_id: Calling user, for the ownership check.
            inputs: Replacement inputs; the stored inputs are used if None.
            method: Expected method; must match the record when given.

        Returns:
            The engine result.

        Raises:
            ValuationNotFoundError: If it does not exist.
            ValuationAccessError: If user_id does not own it.
            ValidationError: If inputs are invalid.
            MethodMismatchError: If method does not match the record.
            DomainError: If the valuation is undefined for these inputs.
        """
        record = self._get_owned(valuation_id, user_id)
        if method is not None and _parse_method(method) != record.method:
            raise MethodMismatchError(
                "Valuation method mismatch",
                [FieldViolation("method", f"valuation uses {record.method.value}")],
                context={
                    "expected": record.method.value,
                    "requested": getattr(method, "value", method),
                },
            )

        effective_inputs = dict(inputs) if inputs is not None else record.inputs

        with log_context(
            valuation_id=record.id, company_id=record.company_id, method=record.method.value
        ):
            result = calculate(
                record.method,
                effective_inputs,
                default_projection_years=self.default_projection_years,
            )
            self.store.complete_valuation(
                record.id,
                inputs=effective_inputs,
                result=result.to_dict(),
                **result.record_values(),
            )
            logger.info("Valuation completed")

        return result

    def record_valuation(
        self,
        company_id: int,
        method: ValuationMethod | str,
        inputs: Mapping[str, Any],
        notes: str | None = None,
        user_id: int | None = None,
    ) -> tuple[ValuationRecord, ValuationResult]:
        """Run a valuation and store it as completed in one step.

        The engine runs before anything is written, so a failed calculation
        leaves no record behind.

        Returns:
            The completed record and the engine result.

        Raises:
            ValidationError: If the method is unknown or inputs are invalid.
            DomainError: If the valuation is undefined for these inputs.
        """
        method = _parse_method(method)
        with log_context(company_id=company_id, method=method.value):
            result = calculate(
                method, inputs, default_projection_years=self.default_projection_years
            )

        record = self.store.create_valuation(
            company_id, method, dict(inputs), notes=notes, user_id=user_id
        )
        with log_context(valuation_id=record.id, company_id=company_id, method=method.value):
            completed = self.store.complete_valuation(
                record.id,
                inputs=dict(inputs),
                result=result.to_dict(),
                **result.record_values(),
            )
            logger.info("Valuation recorded")

        if completed is None:
            raise ValuationNotFoundError(
                "Valuation not found", context={"valuation_id": record.id}
            )
        return completed, result

    def delete_valuation(self, valuation_id: str, *, user_id: int | None = None) -> None:
        """Delete a valuation.

        Raises:
            ValuationNotFoundError: If it does not exist.
            ValuationAccessError: If user_id does not own it.
        """
        self._get_owned(valuation_id, user_id)
        self.store.delete_valuation(valuation_id)
        logger.info("Valuation deleted", valuation_id=valuation_id)


def _parse_method(method: ValuationMethod | str) -> ValuationMethod:
    try:
        return ValuationMethod(method)
    except ValueError:
        raise ValidationError(
            "Unknown valuation method",
            [FieldViolation("method", f"unknown method {method!r}")],
            context={"method": method, "expected": [m.value for m in ValuationMethod]},
        ) from None


def _parse_status(status: ValuationStatus | str) -> ValuationStatus:
    try:
        return ValuationStatus(status)
    except ValueError:
        raise ValidationError(
            "Unknown valuation status",
            [FieldViolation("status", f"unknown status {status!r}")],
            context={"status": status, "expected": [s.value for s in ValuationStatus]},
        ) from None
