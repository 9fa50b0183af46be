"""
Configuration Loader (``gst_config.loader``).

Responsibility
--------------
Loads YAML policy and catalog files and parses them into typed
``gst_config.schema`` instances.  Runtime code obtains the policy through
``gst_config.get_active_policy()``; catalogs are seeded through
``load_catalog``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel types
and the engine value objects it produces; nothing in the kernel or the
engines imports it.

Invariants enforced
-------------------
* Rates and ratios are parsed to ``Decimal`` from their YAML text, never
  carried as binary floats.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys or invalid values in a policy or catalog file
  -> ``ConfigurationError`` naming the file, chained to the cause.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from gst_kernel.domain.types import (
    BusinessType,
    GeographicalZone,
    RateResolutionStrategy,
    TaxComponentType,
)
from gst_kernel.exceptions import ConfigurationError, GstEngineError
from gst_kernel.logging_config import get_logger
from gst_engines.classification import ClassificationCode
from gst_engines.rates import ExemptionRules, TaxRateRecord
from gst_config.schema import Catalog, PolicySetDefinition

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """
    Parse a date from YAML (string or date object).

    Raises:
        ValueError: if ``value`` is not a valid date representation.
    """
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_optional_date(value: Any) -> date | None:
    return parse_date(value) if value not in (None, "") else None


def parse_decimal(value: Any) -> Decimal:
    """
    Parse a Decimal from YAML.

    Unquoted YAML numbers arrive as int or float; floats are converted from
    their shortest repr (``0.6`` -> ``Decimal("0.6")``), not their binary
    value.

    Raises:
        ValueError: if ``value`` is not numeric.
    """
    if isinstance(value, bool):
        raise ValueError(f"Cannot parse decimal from {value!r}")
    if isinstance(value, (int, float, str, Decimal)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Cannot parse decimal from {value!r}") from exc
    raise ValueError(f"Cannot parse decimal from {value!r}")


def parse_optional_decimal(value: Any) -> Decimal | None:
    return parse_decimal(value) if value is not None else None


def parse_policy(data: dict[str, Any]) -> PolicySetDefinition:
    """
    Parse a ``PolicySetDefinition`` from a dict.

    Only ``name`` is required; every other key falls back to the default.

    Raises:
        KeyError: if ``name`` is missing.
        ValueError: if a value cannot be parsed.
    """
    labels = data.get("labels", {})
    defaults = PolicySetDefinition(name=data["name"])
    codes = data.get("union_territory_codes")
    return PolicySetDefinition(
        name=data["name"],
        version=int(data.get("version", 1)),
        union_territory_codes=(
            tuple(str(c).upper() for c in codes)
            if codes is not None else defaults.union_territory_codes
        ),
        composition_ratio=(
            parse_decimal(data["composition_ratio"])
            if "composition_ratio" in data else defaults.composition_ratio
        ),
        decimal_places=int(data.get("decimal_places", defaults.decimal_places)),
        rate_resolution_strategy=RateResolutionStrategy(
            data.get("rate_resolution_strategy", defaults.rate_resolution_strategy.value)
        ),
        composition_label=labels.get("composition", defaults.composition_label),
        cess_label=labels.get("cess", defaults.cess_label),
        checksum=compute_checksum(data),
    )


def parse_classification(data: dict[str, Any]) -> ClassificationCode:
    """Parse a ``ClassificationCode`` from a dict (``code`` required)."""
    parent = data.get("parent")
    return ClassificationCode(
        code=str(data["code"]),
        level=int(data.get("level", 1)),
        parent_code=str(parent) if parent is not None else None,
        description=data.get("description", ""),
        active=bool(data.get("active", True)),
        effective_from=parse_optional_date(data.get("effective_from")),
        effective_to=parse_optional_date(data.get("effective_to")),
        unit_of_measurement=data.get("unit"),
    )


def parse_rate(data: dict[str, Any], classification_code: str | None = None) -> TaxRateRecord:
    """
    Parse a ``TaxRateRecord`` from a dict.

    ``classification_code`` supplies the code when the rate is nested under
    its HSN entry.

    Raises:
        KeyError: if ``component``, ``rate`` or ``effective_from`` is missing.
        ValueError: if a value cannot be parsed.
        InvalidRateRecordError: if the parsed record violates an invariant.
    """
    code = data.get("code", classification_code)
    if code is None:
        raise KeyError("code")
    zone = data.get("zone")
    return TaxRateRecord(
        classification_code=str(code),
        component_type=TaxComponentType(data["component"]),
        rate_percentage=parse_decimal(data["rate"]),
        business_type=BusinessType(data.get("business_type", BusinessType.B2B.value)),
        effective_from=parse_date(data["effective_from"]),
        effective_to=parse_optional_date(data.get("effective_to")),
        geographical_zone=GeographicalZone(zone) if zone else None,
        fixed_amount_per_unit=parse_optional_decimal(data.get("fixed_per_unit")),
        minimum_amount=parse_optional_decimal(data.get("minimum_amount")),
        maximum_amount=parse_optional_decimal(data.get("maximum_amount")),
        active=bool(data.get("active", True)),
        version_number=int(data.get("version", 1)),
        is_reverse_charge_applicable=bool(data.get("reverse_charge", False)),
        is_composition_scheme_applicable=bool(data.get("composition_eligible", True)),
        notification_number=data.get("notification"),
        description=data.get("description"),
        exemptions=parse_exemptions(data.get("exemptions")),
    )


def parse_exemptions(data: Any) -> ExemptionRules | None:
    """
    Parse the optional ``exemptions`` mapping of a rate entry.

    Example::

        exemptions:
          EXEMPTION_THRESHOLD: 1000
          SMALL_BUSINESS: {condition: LESS_THAN, threshold: 2000000}
          ESSENTIAL_GOODS: true

    Raises:
        ValueError: if the value is not a mapping or a rule is malformed.
    """
    if not data:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"exemptions must be a mapping, got {type(data).__name__}")
    return ExemptionRules.from_mapping(data)


def load_policy_set(path: Path) -> PolicySetDefinition:
    """
    Load a policy set file.

    Raises:
        FileNotFoundError, yaml.YAMLError, ConfigurationError.
    """
    data = load_yaml_file(path)
    try:
        policy = parse_policy(data)
    except (KeyError, ValueError, TypeError) as exc:
        raise ConfigurationError(str(path), _describe(exc)) from exc

    logger.debug("policy_set_loaded", extra={
        "path": str(path),
        "policy_name": policy.name,
        "policy_version": policy.version,
    })
    return policy


def load_catalog(path: Path) -> Catalog:
    """
    Load an HSN / rate catalog file.

    Layout::

        name: sample
        hsn:
          - code: "25"
            description: Salt; sulphur; earths and stone; cement
          - code: "2523"
            parent: "25"
            level: 2
            rates:
              - component: IGST
                rate: 28
                effective_from: 2017-07-01

    Rates may also be listed at top level under ``rates`` with an explicit
    ``code``.

    Raises:
        FileNotFoundError, yaml.YAMLError, ConfigurationError.
    """
    data = load_yaml_file(path)
    classifications: list[ClassificationCode] = []
    rates: list[TaxRateRecord] = []
    try:
        for entry in data.get("hsn", []):
            node = parse_classification(entry)
            classifications.append(node)
            for rate in entry.get("rates", []):
                rates.append(parse_rate(rate, node.code))
        for rate in data.get("rates", []):
            rates.append(parse_rate(rate))
        catalog = Catalog(
            name=data.get("name", Path(path).stem),
            classifications=tuple(classifications),
            rates=tuple(rates),
            checksum=compute_checksum(data),
        )
    except (KeyError, ValueError, TypeError, GstEngineError) as exc:
        raise ConfigurationError(str(path), _describe(exc)) from exc

    logger.info("catalog_loaded", extra={
        "path": str(path),
        "catalog_name": catalog.name,
        "classification_count": len(catalog.classifications),
        "rate_count": len(catalog.rates),
        "checksum": catalog.checksum,
    })
    return catalog


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _describe(exc: Exception) -> str:
    if isinstance(exc, KeyError):
        return f"missing key {exc.args[0]!r}"
    return str(exc)
