"""
Tax Computation Engine - GST components for one invoice line.

Given an amount, quantity, HSN code, business type, buyer / seller state,
date and tax spec, produce the ordered list of GST component amounts plus
totals.  Rates come from the resolver; the engine itself performs no I/O.

Component rules by tax spec:
    INTER        IGST at the resolved IGST rate
    INTRA        CGST and SGST (UTGST for Union-Territory buyers); each half
                 of one aggregate rate, or independently configured records
    COMPOSITION  one component at the composition rate (a configured
                 COMPOSITION record, else the GST rate x composition ratio)
    EXPORT /
    EXEMPT / NIL no components, zero tax
    any taxable  plus cess when a cess record resolves with a non-zero rate

Exemption rules on a contributing rate record are evaluated after the
components; the first that applies is reported in ``exemption_applied`` and
the notes.  Amounts are not reduced by it.

Errors never escape ``compute_tax``: invalid input (including amounts that
are not finite decimals) and typed kernel exceptions are converted into a
failed ``TaxComputationResult`` carrying a ``TaxComputationError``.
``raise_for_error`` re-raises the original exception for callers that
prefer exceptions.

Usage:
    from gst_engines.computation import TaxComputationEngine

    engine = TaxComputationEngine(tree, registry)
    result = engine.compute_tax(
        base_amount=Decimal("50000"),
        quantity=1,
        classification_code="2523",
        business_type=BusinessType.B2B,
        buyer_state_code="KA",
        seller_state_code="KA",
        as_of_date=date(2024, 1, 1),
        tax_spec=TransactionTaxSpec.INTRA,
    )
    result.total_tax_amount  # Decimal("14000.0000")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Sequence

from gst_kernel.domain.precision import ZERO, percentage_of, round_tax, to_decimal
from gst_kernel.domain.types import (
    AdvisoryCode,
    BusinessType,
    ExemptionType,
    RateResolutionStrategy,
    TaxComponentType,
    TransactionTaxSpec,
)
from gst_kernel.exceptions import (
    GstEngineError,
    InvalidNumberError,
    InvalidQuantityError,
    MissingJurisdictionError,
    NegativeAmountError,
    RateNotFoundError,
)
from gst_kernel.logging_config import LogContext, get_logger
from gst_engines.classification import ClassificationLookup, require_valid_classification
from gst_engines.policy import GstPolicy
from gst_engines.rates import RateLookup, TaxRateRecord
from gst_engines.resolver import RateResolver
from gst_engines.tracer import traced_engine

logger = get_logger("engines.computation")

# The aggregate GST rate for an HSN code is configured as the IGST record.
AGGREGATE_GST_COMPONENT = TaxComponentType.IGST

_ONE = Decimal("1")

_SPEC_LABELS = {
    TransactionTaxSpec.INTER: "Inter-state",
    TransactionTaxSpec.INTRA: "Intra-state",
    TransactionTaxSpec.COMPOSITION: "Composition scheme",
    TransactionTaxSpec.EXPORT: "Export",
    TransactionTaxSpec.EXEMPT: "Exempt",
    TransactionTaxSpec.NIL: "Nil rated",
}


@dataclass(frozen=True)
class TaxComponentResult:
    """One computed tax component of an invoice line."""

    component_type: TaxComponentType
    name: str
    percentage: Decimal
    base_amount: Decimal
    calculated_amount: Decimal
    tax_spec: TransactionTaxSpec
    is_fixed: bool = False
    source_version: int | None = None


@dataclass(frozen=True)
class Advisory:
    """Non-fatal finding attached to a successful computation."""

    code: AdvisoryCode
    message: str
    component_type: TaxComponentType | None = None


@dataclass(frozen=True)
class TaxComputationError:
    """
    Structured failure of a computation.

    ``code`` is the category (INVALID_CLASSIFICATION, RATE_NOT_FOUND,
    INVALID_INPUT); the specific exception code is in ``details["reason"]``.
    """

    code: str
    message: str
    component_type: TaxComponentType | None = None
    details: dict[str, Any] = field(default_factory=dict)
    cause: GstEngineError | None = field(default=None, compare=False, repr=False)

    @classmethod
    def from_exception(cls, exc: GstEngineError) -> TaxComputationError:
        details: dict[str, Any] = {"reason": exc.code}
        for key, value in vars(exc).items():
            if key.startswith("_"):
                continue
            details[key] = value.isoformat() if isinstance(value, date) else value

        component = None
        if isinstance(exc, RateNotFoundError):
            component = TaxComponentType(exc.component_type)

        return cls(
            code=exc.category,
            message=str(exc),
            component_type=component,
            details=details,
            cause=exc,
        )


@dataclass(frozen=True)
class TaxComputationResult:
    """
    Outcome of computing tax for one line.

    Success carries the components in emission order and the totals; failure
    carries only the error.  Totals are None on failure so a failed result
    cannot be summed by mistake.
    """

    tax_spec: TransactionTaxSpec
    classification_code: str
    components: tuple[TaxComponentResult, ...] = ()
    taxable_value: Decimal | None = None
    total_tax_amount: Decimal | None = None
    total_amount: Decimal | None = None
    advisories: tuple[Advisory, ...] = ()
    notes: tuple[str, ...] = ()
    exemption_applied: ExemptionType | None = None
    error: TaxComputationError | None = None

    @classmethod
    def success(
        cls,
        tax_spec: TransactionTaxSpec,
        classification_code: str,
        taxable_value: Decimal,
        components: Sequence[TaxComponentResult] = (),
        advisories: Sequence[Advisory] = (),
        notes: Sequence[str] = (),
        exemption_applied: ExemptionType | None = None,
    ) -> TaxComputationResult:
        total_tax = sum((c.calculated_amount for c in components), ZERO)
        return cls(
            tax_spec=tax_spec,
            classification_code=classification_code,
            components=tuple(components),
            taxable_value=taxable_value,
            total_tax_amount=total_tax,
            total_amount=taxable_value + total_tax,
            advisories=tuple(advisories),
            notes=tuple(notes),
            exemption_applied=exemption_applied,
        )

    @classmethod
    def failure(
        cls,
        error: TaxComputationError,
        tax_spec: TransactionTaxSpec,
        classification_code: str,
    ) -> TaxComputationResult:
        return cls(
            tax_spec=tax_spec,
            classification_code=classification_code,
            error=error,
        )

    @property
    def is_success(self) -> bool:
        return self.error is None

    @property
    def advisory_codes(self) -> frozenset[AdvisoryCode]:
        return frozenset(a.code for a in self.advisories)

    def amount_for(self, component_type: TaxComponentType) -> Decimal:
        """Summed amount of one component type (zero if absent)."""
        return sum(
            (c.calculated_amount for c in self.components if c.component_type == component_type),
            ZERO,
        )

    def raise_for_error(self) -> TaxComputationResult:
        """Return self on success; re-raise the underlying error otherwise."""
        if self.error is None:
            return self
        if self.error.cause is not None:
            raise self.error.cause
        raise GstEngineError(self.error.message)


@dataclass(frozen=True)
class TaxLineItem:
    """One line of a bulk computation."""

    classification_code: str
    base_amount: Decimal
    quantity: Decimal | int = 1
    line_id: str | None = None


@dataclass(frozen=True)
class BulkTaxComputationResult:
    """Per-line results plus totals over the successful lines."""

    results: tuple[TaxComputationResult, ...]
    total_taxable_value: Decimal
    total_tax_amount: Decimal
    total_amount: Decimal

    @property
    def failed(self) -> tuple[TaxComputationResult, ...]:
        return tuple(r for r in self.results if not r.is_success)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed


def infer_tax_spec(
    seller_state_code: str | None,
    buyer_state_code: str | None,
    business_type: BusinessType = BusinessType.B2B,
) -> TransactionTaxSpec:
    """
    Derive the tax spec from the parties.

    Exports are EXPORT and composition dealers COMPOSITION.  A missing state on either side is treated as
    inter-state; same state is INTRA (UT routing happens at computation).
    """
    if business_type == BusinessType.EXPORT:
        return TransactionTaxSpec.EXPORT
    if business_type == BusinessType.COMPOSITION:
        return TransactionTaxSpec.COMPOSITION
    if not seller_state_code or not buyer_state_code:
        return TransactionTaxSpec.INTER
    if seller_state_code.strip().upper() == buyer_state_code.strip().upper():
        return TransactionTaxSpec.INTRA
    return TransactionTaxSpec.INTER


def _parse_number(value: Any, field_name: str) -> Decimal:
    try:
        parsed = to_decimal(value, field_name)
    except (TypeError, ValueError) as exc:
        raise InvalidNumberError(field_name, repr(value), str(exc)) from exc
    if not parsed.is_finite():
        raise InvalidNumberError(field_name, str(parsed), "must be finite")
    return parsed


def _normalize_state(state_code: str | None) -> str | None:
    if state_code is None or not state_code.strip():
        return None
    return state_code.strip().upper()


def _rate_basis(business_type: BusinessType) -> BusinessType:
    """Business type whose rates a composition dealer's line is derived from."""
    if business_type == BusinessType.COMPOSITION:
        return BusinessType.B2B
    return business_type


@dataclass(frozen=True)
class _LineContext:
    classification_code: str
    business_type: BusinessType
    buyer_state_code: str | None
    seller_state_code: str | None
    as_of_date: date
    tax_spec: TransactionTaxSpec
    taxable_value: Decimal
    quantity: Decimal


class TaxComputationEngine:
    """
    Compute GST for invoice lines.

    Contract:
        Holds read-only references to a classification lookup, a rate lookup
        and a policy.  Repeated calls with equal inputs against the same
        catalog return equal results.
    """

    def __init__(
        self,
        classifications: ClassificationLookup,
        rates: RateLookup,
        policy: GstPolicy | None = None,
    ):
        self._classifications = classifications
        self._resolver = RateResolver(rates)
        self._policy = policy or GstPolicy()

    @property
    def policy(self) -> GstPolicy:
        return self._policy

    @property
    def resolver(self) -> RateResolver:
        return self._resolver

    @traced_engine(
        "gst_tax",
        "1.0",
        fingerprint_fields=(
            "base_amount",
            "quantity",
            "classification_code",
            "business_type",
            "buyer_state_code",
            "seller_state_code",
            "as_of_date",
            "tax_spec",
            "strategy",
        ),
    )
    def compute_tax(
        self,
        base_amount: Decimal | int | str,
        quantity: Decimal | int | str,
        classification_code: str,
        business_type: BusinessType,
        buyer_state_code: str | None,
        seller_state_code: str | None,
        as_of_date: date,
        tax_spec: TransactionTaxSpec,
        strategy: RateResolutionStrategy | None = None,
    ) -> TaxComputationResult:
        """
        Compute the GST components of one line.

        Args:
            base_amount: Per-unit amount before tax (>= 0).
            quantity: Unit count (>= 1).
            classification_code: HSN code of the item.
            business_type: Business type of the transaction.
            buyer_state_code: Destination state; required for INTRA.
            seller_state_code: Origin state; used for advisories only.
            as_of_date: Transaction date all rates must be valid on.
            tax_spec: Jurisdictional nature of the transaction.
            strategy: Intra-state strategy; defaults to the policy's.

        Returns:
            TaxComputationResult; failed on invalid input, classification or
            a missing required rate.
        """
        t0 = time.monotonic()
        strategy = strategy or self._policy.rate_resolution_strategy

        with LogContext.bind(
            classification_code=classification_code,
            tax_spec=tax_spec,
            as_of_date=as_of_date,
        ):
            logger.info("tax_computation_started", extra={
                "business_type": business_type,
                "buyer_state_code": buyer_state_code,
                "seller_state_code": seller_state_code,
                "strategy": strategy,
            })
            try:
                result = self._compute(
                    base_amount,
                    quantity,
                    classification_code,
                    business_type,
                    buyer_state_code,
                    seller_state_code,
                    as_of_date,
                    tax_spec,
                    strategy,
                )
            except GstEngineError as exc:
                error = TaxComputationError.from_exception(exc)
                logger.warning("tax_computation_failed", extra={
                    "error_code": error.code,
                    "reason": exc.code,
                    "error_message": error.message,
                })
                return TaxComputationResult.failure(error, tax_spec, classification_code)

            logger.info("tax_computation_completed", extra={
                "component_count": len(result.components),
                "taxable_value": result.taxable_value,
                "total_tax_amount": result.total_tax_amount,
                "advisories": [a.code for a in result.advisories],
                "exemption_applied": result.exemption_applied,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            })
            return result

    def compute_bulk(
        self,
        items: Sequence[TaxLineItem],
        business_type: BusinessType,
        buyer_state_code: str | None,
        seller_state_code: str | None,
        as_of_date: date,
        tax_spec: TransactionTaxSpec | None = None,
        strategy: RateResolutionStrategy | None = None,
        invoice_id: str | None = None,
    ) -> BulkTaxComputationResult:
        """
        Compute every line of an invoice with shared party context.

        A failed line does not stop the others; totals cover the successful
        lines.  When ``tax_spec`` is None it is inferred from the parties.
        Log records of each line carry ``invoice_id`` and the line's id
        (its position when the item has none).
        """
        spec = tax_spec or infer_tax_spec(seller_state_code, buyer_state_code, business_type)
        results: list[TaxComputationResult] = []

        with LogContext.bind(invoice_id=invoice_id, tax_spec=spec, as_of_date=as_of_date):
            for index, item in enumerate(items):
                with LogContext.bind(line_id=item.line_id or str(index)):
                    results.append(self.compute_tax(
                        base_amount=item.base_amount,
                        quantity=item.quantity,
                        classification_code=item.classification_code,
                        business_type=business_type,
                        buyer_state_code=buyer_state_code,
                        seller_state_code=seller_state_code,
                        as_of_date=as_of_date,
                        tax_spec=spec,
                        strategy=strategy,
                    ))

            succeeded = [r for r in results if r.is_success]
            total_taxable = sum((r.taxable_value for r in succeeded), ZERO)
            total_tax = sum((r.total_tax_amount for r in succeeded), ZERO)

            logger.info("bulk_tax_computation_completed", extra={
                "line_count": len(results),
                "failed_count": len(results) - len(succeeded),
                "total_tax_amount": total_tax,
            })
        return BulkTaxComputationResult(
            results=tuple(results),
            total_taxable_value=total_taxable,
            total_tax_amount=total_tax,
            total_amount=total_taxable + total_tax,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _compute(
        self,
        base_amount: Decimal | int | str,
        quantity: Decimal | int | str,
        classification_code: str,
        business_type: BusinessType,
        buyer_state_code: str | None,
        seller_state_code: str | None,
        as_of_date: date,
        tax_spec: TransactionTaxSpec,
        strategy: RateResolutionStrategy,
    ) -> TaxComputationResult:
        base = _parse_number(base_amount, "base_amount")
        qty = _parse_number(quantity, "quantity")
        if base < ZERO:
            raise NegativeAmountError(str(base))
        if qty < _ONE:
            raise InvalidQuantityError(str(qty))

        buyer = _normalize_state(buyer_state_code)
        seller = _normalize_state(seller_state_code)
        if tax_spec == TransactionTaxSpec.INTRA and buyer is None:
            raise MissingJurisdictionError(tax_spec.value)

        require_valid_classification(self._classifications, classification_code, as_of_date)

        ctx = _LineContext(
            classification_code=classification_code,
            business_type=business_type,
            buyer_state_code=buyer,
            seller_state_code=seller,
            as_of_date=as_of_date,
            tax_spec=tax_spec,
            taxable_value=round_tax(base * qty, self._policy.decimal_places),
            quantity=qty,
        )
        notes = [f"Transaction type: {_SPEC_LABELS[tax_spec]}"]

        if not tax_spec.is_taxable:
            notes.append(f"No GST levied on {_SPEC_LABELS[tax_spec].lower()} supplies")
            return TaxComputationResult.success(
                tax_spec, classification_code, ctx.taxable_value, notes=notes,
            )

        components: list[TaxComponentResult] = []
        used: list[TaxRateRecord] = []
        advisories: list[Advisory] = []

        if tax_spec == TransactionTaxSpec.INTER:
            record = self._require(ctx, TaxComponentType.IGST)
            used.append(record)
            components.append(self._component(ctx, TaxComponentType.IGST, "IGST", record))
        elif tax_spec == TransactionTaxSpec.INTRA:
            components.extend(self._intra_components(ctx, strategy, used))
        else:
            components.append(self._composition_component(ctx, used, advisories, notes))

        cess = self._resolver.resolve(
            classification_code,
            TaxComponentType.CESS,
            _rate_basis(business_type),
            buyer,
            as_of_date,
        )
        if cess is not None and cess.has_amount:
            used.append(cess)
            components.append(
                self._component(ctx, TaxComponentType.CESS, self._policy.cess_label, cess)
            )

        advisories.extend(self._advisories(ctx, used, notes))
        exemption = self._exemption(ctx, used, notes)
        return TaxComputationResult.success(
            tax_spec,
            classification_code,
            ctx.taxable_value,
            components=components,
            advisories=advisories,
            notes=notes,
            exemption_applied=exemption,
        )

    def _require(
        self,
        ctx: _LineContext,
        component_type: TaxComponentType,
        business_type: BusinessType | None = None,
    ) -> TaxRateRecord:
        business_type = business_type or ctx.business_type
        record = self._resolver.resolve(
            ctx.classification_code,
            component_type,
            business_type,
            ctx.buyer_state_code,
            ctx.as_of_date,
        )
        if record is None:
            raise RateNotFoundError(
                ctx.classification_code,
                component_type.value,
                business_type.value,
                ctx.buyer_state_code,
                ctx.as_of_date,
            )
        return record

    def _component(
        self,
        ctx: _LineContext,
        component_type: TaxComponentType,
        name: str,
        record: TaxRateRecord,
    ) -> TaxComponentResult:
        amount = record.calculate_amount(
            ctx.taxable_value, ctx.quantity, self._policy.decimal_places,
        )
        return TaxComponentResult(
            component_type=component_type,
            name=name,
            percentage=record.rate_percentage,
            base_amount=ctx.taxable_value,
            calculated_amount=amount,
            tax_spec=ctx.tax_spec,
            is_fixed=record.rate_percentage == ZERO and bool(record.fixed_amount_per_unit),
            source_version=record.version_number,
        )

    def _intra_components(
        self,
        ctx: _LineContext,
        strategy: RateResolutionStrategy,
        used: list[TaxRateRecord],
    ) -> list[TaxComponentResult]:
        state_component = self._policy.state_component_for(ctx.buyer_state_code)

        if strategy == RateResolutionStrategy.HALF_SPLIT:
            aggregate = self._require(ctx, AGGREGATE_GST_COMPONENT)
            used.append(aggregate)
            central_record = state_record = aggregate.halved()
        else:
            central_record = self._require(ctx, TaxComponentType.CGST)
            state_record = self._require(ctx, state_component)
            used.extend((central_record, state_record))

        return [
            self._component(ctx, TaxComponentType.CGST, "CGST", central_record),
            self._component(ctx, state_component, state_component.value, state_record),
        ]

    def _composition_component(
        self,
        ctx: _LineContext,
        used: list[TaxRateRecord],
        advisories: list[Advisory],
        notes: list[str],
    ) -> TaxComponentResult:
        configured = self._resolver.resolve(
            ctx.classification_code,
            AGGREGATE_GST_COMPONENT,
            BusinessType.COMPOSITION,
            ctx.buyer_state_code,
            ctx.as_of_date,
        )
        if configured is not None:
            used.append(configured)
            return self._component(
                ctx, AGGREGATE_GST_COMPONENT, self._policy.composition_label, configured,
            )

        gst = self._require(ctx, AGGREGATE_GST_COMPONENT, _rate_basis(ctx.business_type))
        used.append(gst)
        if not gst.is_composition_scheme_applicable:
            advisories.append(Advisory(
                code=AdvisoryCode.COMPOSITION_NOT_ELIGIBLE,
                message=(
                    f"HSN {ctx.classification_code} is not marked eligible "
                    "for the composition scheme"
                ),
                component_type=AGGREGATE_GST_COMPONENT,
            ))

        rate = gst.rate_percentage * self._policy.composition_ratio
        notes.append(
            f"Composition rate {rate}% derived from GST rate "
            f"{gst.rate_percentage}% x {self._policy.composition_ratio}"
        )
        return TaxComponentResult(
            component_type=AGGREGATE_GST_COMPONENT,
            name=self._policy.composition_label,
            percentage=rate,
            base_amount=ctx.taxable_value,
            calculated_amount=percentage_of(
                ctx.taxable_value, rate, self._policy.decimal_places,
            ),
            tax_spec=ctx.tax_spec,
        )

    def _advisories(
        self,
        ctx: _LineContext,
        used: list[TaxRateRecord],
        notes: list[str],
    ) -> list[Advisory]:
        found: list[Advisory] = []

        reverse = [r for r in used if r.is_reverse_charge_applicable]
        if reverse:
            found.append(Advisory(
                code=AdvisoryCode.REVERSE_CHARGE,
                message="Reverse charge applicable - tax payable by recipient",
                component_type=reverse[0].component_type,
            ))
            notes.append("Reverse charge applicable - tax payable by recipient")

        seller, buyer = ctx.seller_state_code, ctx.buyer_state_code
        if seller is not None and buyer is not None:
            if ctx.tax_spec == TransactionTaxSpec.INTRA and seller != buyer:
                found.append(Advisory(
                    code=AdvisoryCode.JURISDICTION_MISMATCH,
                    message=f"INTRA requested but seller {seller} and buyer {buyer} differ",
                ))
            elif ctx.tax_spec == TransactionTaxSpec.INTER and seller == buyer:
                found.append(Advisory(
                    code=AdvisoryCode.JURISDICTION_MISMATCH,
                    message=f"INTER requested but seller and buyer are both {seller}",
                ))

        for advisory in found:
            logger.info("tax_advisory_raised", extra={"advisory": advisory.code})
        return found

    def _exemption(
        self,
        ctx: _LineContext,
        used: list[TaxRateRecord],
        notes: list[str],
    ) -> ExemptionType | None:
        """First exemption granted by a contributing record, reported but not deducted."""
        for record in used:
            if record.exemptions is None:
                continue
            exemption = record.exemptions.evaluate(ctx.taxable_value, ctx.quantity)
            if exemption is None:
                continue
            notes.append(f"Exemption applied: {exemption.label}")
            logger.info("tax_exemption_applied", extra={
                "exemption": exemption.value,
                "component_type": record.component_type.value,
                "taxable_value": str(ctx.taxable_value),
            })
            return exemption
        return None
