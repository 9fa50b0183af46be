"""
Typed exception hierarchy for the GST kernel and engines.

Every error has a typed class, a class-level ``code`` attribute that is
machine-readable and API-safe, and structured attributes carrying the data
needed to act on it. Callers catch by type and read attributes; they never
parse messages.

    try:
        engine.compute_tax(...).raise_for_error()
    except RateNotFoundError as e:
        prompt_for_master_data(e.classification_code, e.component_type)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GstEngineError (base)
    |
    +-- ClassificationError                 INVALID_CLASSIFICATION
    |   +-- ClassificationNotFoundError     CLASSIFICATION_NOT_FOUND
    |   +-- BrokenClassificationChainError  BROKEN_CLASSIFICATION_CHAIN
    |   +-- ClassificationCycleError        CLASSIFICATION_CYCLE
    |   +-- ClassificationLevelError        CLASSIFICATION_LEVEL_MISMATCH
    |   +-- ClassificationInactiveError     CLASSIFICATION_INACTIVE
    |
    +-- RateError                           RATE_ERROR
    |   +-- RateNotFoundError               RATE_NOT_FOUND
    |   +-- DuplicateRateVersionError       DUPLICATE_RATE_VERSION
    |   +-- InvalidRateRecordError          INVALID_RATE_RECORD
    |
    +-- TaxInputError                       INVALID_INPUT
    |   +-- InvalidNumberError              INVALID_NUMBER
    |   +-- NegativeAmountError             NEGATIVE_AMOUNT
    |   +-- InvalidQuantityError            INVALID_QUANTITY
    |   +-- MissingJurisdictionError        MISSING_JURISDICTION
    |
    +-- ConfigurationError                  CONFIGURATION_ERROR

The computation engine converts these into ``TaxComputationError`` values at
its public boundary. The category code (INVALID_CLASSIFICATION, RATE_NOT_FOUND,
INVALID_INPUT) is what the result carries; the leaf code is kept in details.
"""

from datetime import date


class GstEngineError(Exception):
    """
    Base exception for all GST engine errors.

    All subclasses must have a ``code`` class attribute.
    """

    code: str = "GST_ENGINE_ERROR"
    category: str = "GST_ENGINE_ERROR"


# Classification-related exceptions


class ClassificationError(GstEngineError):
    """Base exception for classification tree errors."""

    code: str = "INVALID_CLASSIFICATION"
    category: str = "INVALID_CLASSIFICATION"


class ClassificationNotFoundError(ClassificationError):
    """Classification code does not exist."""

    code: str = "CLASSIFICATION_NOT_FOUND"

    def __init__(self, classification_code: str):
        self.classification_code = classification_code
        super().__init__(f"Classification code not found: {classification_code}")


class BrokenClassificationChainError(ClassificationError):
    """A code references a parent that cannot be resolved."""

    code: str = "BROKEN_CLASSIFICATION_CHAIN"

    def __init__(self, classification_code: str, missing_parent: str):
        self.classification_code = classification_code
        self.missing_parent = missing_parent
        super().__init__(
            f"Classification code {classification_code} references "
            f"unknown parent {missing_parent}"
        )


class ClassificationCycleError(ClassificationError):
    """The parent chain of a code loops back on itself."""

    code: str = "CLASSIFICATION_CYCLE"

    def __init__(self, classification_code: str, chain: tuple[str, ...]):
        self.classification_code = classification_code
        self.chain = chain
        super().__init__(
            f"Cycle in parent chain of {classification_code}: "
            + " -> ".join(chain)
        )


class ClassificationLevelError(ClassificationError):
    """Declared level does not match the distance from the root."""

    code: str = "CLASSIFICATION_LEVEL_MISMATCH"

    def __init__(self, classification_code: str, declared: int, expected: int):
        self.classification_code = classification_code
        self.declared = declared
        self.expected = expected
        super().__init__(
            f"Classification code {classification_code} declares level "
            f"{declared}, expected {expected}"
        )


class ClassificationInactiveError(ClassificationError):
    """Classification code exists but is not valid on the requested date."""

    code: str = "CLASSIFICATION_INACTIVE"

    def __init__(self, classification_code: str, as_of: date):
        self.classification_code = classification_code
        self.as_of = as_of
        super().__init__(
            f"Classification code {classification_code} is not valid on {as_of}"
        )


# Rate-related exceptions


class RateError(GstEngineError):
    """Base exception for rate registry errors."""

    code: str = "RATE_ERROR"
    category: str = "RATE_ERROR"


class RateNotFoundError(RateError):
    """No valid rate record resolves for a required component."""

    code: str = "RATE_NOT_FOUND"
    category: str = "RATE_NOT_FOUND"

    def __init__(
        self,
        classification_code: str,
        component_type: str,
        business_type: str,
        buyer_state_code: str | None,
        as_of: date,
    ):
        self.classification_code = classification_code
        self.component_type = component_type
        self.business_type = business_type
        self.buyer_state_code = buyer_state_code
        self.as_of = as_of
        super().__init__(
            f"No {component_type} rate for {classification_code} "
            f"({business_type}, state={buyer_state_code}) as of {as_of}"
        )


class DuplicateRateVersionError(RateError):
    """A record with the same version key is already registered."""

    code: str = "DUPLICATE_RATE_VERSION"

    def __init__(self, version_key: tuple):
        self.version_key = version_key
        super().__init__(f"Rate version already registered: {version_key}")


class InvalidRateRecordError(RateError):
    """Rate record fields violate a record invariant."""

    code: str = "INVALID_RATE_RECORD"

    def __init__(self, classification_code: str, reason: str):
        self.classification_code = classification_code
        self.reason = reason
        super().__init__(f"Invalid rate record for {classification_code}: {reason}")


# Input-related exceptions


class TaxInputError(GstEngineError):
    """Base exception for invalid computation inputs."""

    code: str = "INVALID_INPUT"
    category: str = "INVALID_INPUT"


class InvalidNumberError(TaxInputError):
    """Amount or quantity is not a finite decimal number."""

    code: str = "INVALID_NUMBER"

    def __init__(self, field: str, value: str, problem: str):
        self.field = field
        self.value = value
        self.problem = problem
        super().__init__(f"{field} {value} is not a usable number: {problem}")


class NegativeAmountError(TaxInputError):
    """Base amount is negative."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Base amount cannot be negative: {amount}")


class InvalidQuantityError(TaxInputError):
    """Quantity is below one."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: str):
        self.quantity = quantity
        super().__init__(f"Quantity must be at least 1: {quantity}")


class MissingJurisdictionError(TaxInputError):
    """Tax spec needs a buyer state code that was not supplied."""

    code: str = "MISSING_JURISDICTION"

    def __init__(self, tax_spec: str):
        self.tax_spec = tax_spec
        super().__init__(f"Tax spec {tax_spec} requires a buyer state code")


# Configuration exceptions


class ConfigurationError(GstEngineError):
    """Policy or catalog configuration is malformed."""

    code: str = "CONFIGURATION_ERROR"
    category: str = "CONFIGURATION_ERROR"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Invalid configuration in {source}: {reason}")
