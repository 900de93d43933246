import logging

import pytest

from src.api.payments.status import (
    internal_status,
    paid_status_tags,
    status_color,
    status_label,
    status_tags,
)
from src.config.constants import InternalStatus, StatusCode


class TestStatusMapper:
    @pytest.mark.parametrize(
        "code, expected",
        [
            ("A", InternalStatus.COMPLETED),
            ("T", InternalStatus.COMPLETED),
            ("B", InternalStatus.PENDING),
            ("D", InternalStatus.PROCESSING),
            ("F", InternalStatus.FAILED),
            ("C", InternalStatus.CANCELLED),
            ("E", InternalStatus.CANCELLED),
        ],
    )
    def test_internal_status(self, code, expected):
        assert internal_status(code) == expected
        assert internal_status(StatusCode(code)) == expected

    def test_mapping_is_deterministic(self):
        for code in StatusCode:
            assert {internal_status(code) for _ in range(5)} == {internal_status(code)}

    @pytest.mark.parametrize("code", ["X", "", None, "a", 7])
    def test_unknown_code_is_pending_and_logged(self, code, caplog):
        with caplog.at_level(logging.WARNING, logger="src.api.payments.status"):
            assert internal_status(code) == InternalStatus.PENDING
        assert "Unknown SpaceRemit status code" in caplog.text

    def test_labels(self):
        assert status_label("A") == "Completed"
        assert status_label("T") == "Test Payment"
        assert status_label("C") == "Refused"
        assert status_label("E") == "Expired"
        assert status_label("Z") == "Unknown"

    def test_colors(self):
        assert status_color("A") == "#46b450"
        assert status_color("Z") == "#666666"

    def test_status_tags(self):
        assert status_tags() == ["A", "B", "D", "E", "F"]
        assert status_tags(include_test=True) == ["A", "B", "D", "E", "F", "T"]
        assert "F" not in paid_status_tags(include_test=True)
        assert "T" in paid_status_tags(include_test=True)
