"""
Service configuration.

Defaults live on InspectionSettings. load_settings() applies environment
overrides once, at startup. A value that cannot be parsed or is out of
range is logged and the default is kept; it never stops the service.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from typing import Callable, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InspectionSettings:
    """Immutable service settings."""

    # External detector
    detector_url: str = "http://localhost:9000/detect"
    detector_threshold: float = 0.1
    detector_iou_threshold: float = 0.2
    detector_timeout_seconds: float = 30.0

    # Store
    db_path: str = "./inspections.db"

    # Business identifiers
    inspection_number_prefix: str = "I"
    identifier_max_attempts: int = 10_000

    # Audit log growth warning (0 disables)
    audit_log_warn_size: int = 1000


DEFAULT_SETTINGS = InspectionSettings()


def _unit_interval(value: str) -> float:
    number = float(value)
    if not 0.0 <= number <= 1.0:
        raise ValueError(f"{number} is outside [0, 1]")
    return number


def _positive_float(value: str) -> float:
    number = float(value)
    if number <= 0:
        raise ValueError(f"{number} must be positive")
    return number


def _positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError(f"{number} must be positive")
    return number


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError(f"{number} must not be negative")
    return number


def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("value is empty")
    return value


# field name -> (environment variable, parser)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], object]]] = {
    "detector_url": ("INSPECTION_DETECTOR_URL", _non_empty),
    "detector_threshold": ("INSPECTION_DETECTOR_THRESHOLD", _unit_interval),
    "detector_iou_threshold": ("INSPECTION_DETECTOR_IOU_THRESHOLD", _unit_interval),
    "detector_timeout_seconds": ("INSPECTION_DETECTOR_TIMEOUT", _positive_float),
    "db_path": ("INSPECTION_DB_PATH", _non_empty),
    "inspection_number_prefix": ("INSPECTION_NUMBER_PREFIX", _non_empty),
    "identifier_max_attempts": ("INSPECTION_ID_MAX_ATTEMPTS", _positive_int),
    "audit_log_warn_size": ("INSPECTION_AUDIT_LOG_WARN_SIZE", _non_negative_int),
}


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    base: InspectionSettings = DEFAULT_SETTINGS,
) -> InspectionSettings:
    """
    Build settings from environment variables.

    Args:
        environ: Mapping to read (defaults to os.environ)
        base: Settings to override

    Returns:
        InspectionSettings with valid overrides applied
    """
    environ = os.environ if environ is None else environ
    overrides = {}

    for settings_field in fields(InspectionSettings):
        env_var, parse = ENV_OVERRIDES[settings_field.name]
        raw = environ.get(env_var)
        if raw is None or raw == "":
            continue
        try:
            overrides[settings_field.name] = parse(raw)
        except ValueError as e:
            logger.warning(
                f"Ignoring {env_var}={raw!r}: {e}. "
                f"Using {getattr(base, settings_field.name)!r}"
            )

    if overrides:
        logger.info(f"Settings overridden from environment: {sorted(overrides)}")

    return replace(base, **overrides)
