"""
SpaceRemit status vocabulary: labels, colors and internal buckets.
"""

from typing import Dict, List

from src.config.constants import InternalStatus, StatusCode
from src.shared.utils import get_logger

logger = get_logger(__name__)

INTERNAL_STATUS: Dict[StatusCode, InternalStatus] = {
    StatusCode.APPROVED: InternalStatus.COMPLETED,
    StatusCode.PENDING: InternalStatus.PENDING,
    StatusCode.REFUSED: InternalStatus.CANCELLED,
    StatusCode.PROCESSING: InternalStatus.PROCESSING,
    StatusCode.EXPIRED: InternalStatus.CANCELLED,
    StatusCode.FAILED: InternalStatus.FAILED,
    StatusCode.TEST_APPROVED: InternalStatus.COMPLETED,
}

STATUS_LABELS: Dict[StatusCode, str] = {
    StatusCode.APPROVED: "Completed",
    StatusCode.PENDING: "Pending",
    StatusCode.REFUSED: "Refused",
    StatusCode.PROCESSING: "Processing",
    StatusCode.EXPIRED: "Expired",
    StatusCode.FAILED: "Failed",
    StatusCode.TEST_APPROVED: "Test Payment",
}

STATUS_COLORS: Dict[StatusCode, str] = {
    StatusCode.APPROVED: "#46b450",
    StatusCode.PENDING: "#ffb900",
    StatusCode.REFUSED: "#dc3232",
    StatusCode.PROCESSING: "#00a0d2",
    StatusCode.EXPIRED: "#666666",
    StatusCode.FAILED: "#dc3232",
    StatusCode.TEST_APPROVED: "#9b59b6",
}

for _table in (INTERNAL_STATUS, STATUS_LABELS, STATUS_COLORS):
    _missing = set(StatusCode) - set(_table)
    if _missing:
        raise RuntimeError(f"Status table is missing codes: {sorted(c.value for c in _missing)}")

UNKNOWN_LABEL = "Unknown"
UNKNOWN_COLOR = "#666666"


def internal_status(code) -> InternalStatus:
    """Map a gateway status code to its internal bucket; unknown codes stay pending."""
    parsed = StatusCode.parse(code)
    if parsed is None:
        logger.warning(f"Unknown SpaceRemit status code {code!r}, treating as pending")
        return InternalStatus.PENDING
    return INTERNAL_STATUS[parsed]


def status_label(code) -> str:
    parsed = StatusCode.parse(code)
    return STATUS_LABELS[parsed] if parsed else UNKNOWN_LABEL


def status_color(code) -> str:
    parsed = StatusCode.parse(code)
    return STATUS_COLORS[parsed] if parsed else UNKNOWN_COLOR


def status_tags(include_test: bool = False) -> List[str]:
    """Codes a browser return may legitimately carry for the given mode."""
    tags = [
        StatusCode.APPROVED.value,
        StatusCode.PENDING.value,
        StatusCode.PROCESSING.value,
        StatusCode.EXPIRED.value,
        StatusCode.FAILED.value,
    ]
    if include_test:
        tags.append(StatusCode.TEST_APPROVED.value)
    return tags


def paid_status_tags(include_test: bool = False) -> List[str]:
    return [tag for tag in status_tags(include_test) if tag != StatusCode.FAILED.value]
