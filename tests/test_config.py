import pytest
from pydantic import ValidationError

from image_match_server.config import Settings


def test_default_thresholds():
    s = Settings()
    assert s.report_threshold <= s.match_threshold


def test_inverted_thresholds_rejected_at_load():
    with pytest.raises(ValidationError, match="report_threshold"):
        Settings(report_threshold=70.0, match_threshold=60.0)


def test_equal_thresholds_allowed():
    s = Settings(report_threshold=60.0, match_threshold=60.0)
    assert s.match_threshold == 60.0
