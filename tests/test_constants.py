"""
Tests for constants module.

Ensures enum definitions are correct and usable.
"""

import pytest

from constants import ConnectionStatus, MeasurementField, MqttTopicSuffix, SupervisorState, TelegramMarker
from measurement import OBIS_FIELDS


class TestConnectionStatus:
    def test_enum_values(self):
        assert ConnectionStatus.ONLINE == "online"
        assert ConnectionStatus.OFFLINE == "offline"

    def test_string_comparison(self):
        status = ConnectionStatus.ONLINE
        assert status == "online"
        assert str(status) == "online"


class TestTelegramMarker:
    def test_startswith_usage(self):
        assert "/ISk5MT382-1000".startswith(TelegramMarker.HEADER)
        assert "!EF2F".startswith(TelegramMarker.TRAILER)
        assert "(00001.001)".startswith(TelegramMarker.CONTINUATION)


class TestMqttTopicSuffix:
    def test_enum_values(self):
        assert MqttTopicSuffix.STATUS == "status"
        assert MqttTopicSuffix.ERROR == "error"

    def test_no_clash_with_measurements(self):
        assert not {str(s) for s in MqttTopicSuffix} & {str(f) for f in MeasurementField}


class TestSupervisorState:
    def test_enum_membership(self):
        assert set(SupervisorState.__members__) == {"RUNNING", "RECOVERING"}


class TestMeasurementField:
    def test_every_field_is_reachable(self):
        """Every field except gas (matched by pattern) has an OBIS mapping."""
        mapped = set(OBIS_FIELDS.values()) | {MeasurementField.GAS_DELIVERED}
        assert mapped == set(MeasurementField)

    def test_values_are_topic_safe(self):
        for field in MeasurementField:
            assert "/" not in field and "+" not in field and "#" not in field


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
