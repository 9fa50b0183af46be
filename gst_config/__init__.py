"""
gst_config -- single public entrypoint for GST policy configuration.

Responsibility:
    Provides the ONLY way to obtain the computation policy at runtime
    through ``get_active_policy()``, and the catalog seeding path through
    ``load_catalog()``.  Policy constants that change with tax law (the
    Union-Territory list, the composition ratio, rounding precision) live
    in YAML, not in engine code.

Architecture position:
    Configuration -- sits above ``gst_kernel`` and ``gst_engines``.  The
    kernel and the engines MUST NEVER import from ``gst_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested policy or catalog file does
      not exist.
    - ``ConfigurationError`` -- a file is missing required keys or holds
      invalid values.

Audit relevance:
    Every ``get_active_policy()`` call emits a ``GST_CONFIG_TRACE`` log
    entry with the policy name, version and checksum, tying each
    computation back to the policy that governed it.
"""

from __future__ import annotations

import logging
from pathlib import Path

from gst_config.loader import compute_checksum, load_catalog, load_policy_set
from gst_config.schema import Catalog, GstPolicy, PolicySetDefinition

_logger = logging.getLogger("gst_kernel.config")

_CONFIG_DIR = Path(__file__).parent
DEFAULT_POLICY_PATH = _CONFIG_DIR / "sets" / "default_policy.yaml"
SAMPLE_CATALOG_PATH = _CONFIG_DIR / "catalogs" / "sample.yaml"


def get_active_policy(path: Path | None = None) -> GstPolicy:
    """The ONLY public policy entrypoint.

    Args:
        path: Override policy file.  Defaults to
            gst_config/sets/default_policy.yaml.

    Returns:
        GstPolicy -- the frozen runtime policy.

    Raises:
        FileNotFoundError: If the policy file does not exist.
        ConfigurationError: If the policy file is invalid.
    """
    policy_set = load_policy_set(path or DEFAULT_POLICY_PATH)
    policy = policy_set.to_policy()

    _logger.info(
        "GST_CONFIG_TRACE",
        extra={
            "trace_type": "GST_CONFIG_TRACE",
            "policy_name": policy_set.name,
            "policy_version": policy_set.version,
            "checksum": policy_set.checksum,
            "union_territory_count": len(policy.union_territory_codes),
            "composition_ratio": str(policy.composition_ratio),
            "rate_resolution_strategy": policy.rate_resolution_strategy.value,
        },
    )
    return policy


__all__ = [
    "Catalog",
    "DEFAULT_POLICY_PATH",
    "GstPolicy",
    "PolicySetDefinition",
    "SAMPLE_CATALOG_PATH",
    "compute_checksum",
    "get_active_policy",
    "load_catalog",
]
