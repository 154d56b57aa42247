"""
Tests for the main entry point and global application setup.
"""

import signal
from unittest.mock import MagicMock

import pytest

import dsmr_reader


@pytest.fixture(autouse=True)
def reset_stopper():
    dsmr_reader.stopper.clear()
    yield
    dsmr_reader.stopper.clear()


def test_main_initialization(mocker):
    """Test that main() reads config and runs the supervisor."""
    mock_read_config = mocker.patch("config.read_config")
    mock_supervisor_class = mocker.patch("dsmr_reader.Supervisor")
    mocker.patch("signal.signal")
    mocker.patch("dsmr_reader.logger")

    dsmr_reader.main()

    mock_read_config.assert_called_once()
    mock_supervisor_class.assert_called_once()
    args, kwargs = mock_supervisor_class.call_args
    assert args[0] is mock_read_config.return_value
    assert kwargs["stopper"] is dsmr_reader.stopper
    mock_supervisor_class.return_value.run_forever.assert_called_once()


def test_signal_handler(mocker):
    """The signal handler sets the stopper so the supervisor loop ends."""
    mocker.patch("config.read_config")
    mocker.patch("dsmr_reader.Supervisor")
    mocker.patch("dsmr_reader.logger")

    handlers = {}
    mocker.patch("signal.signal", side_effect=lambda sig, handler: handlers.setdefault(sig, handler))

    dsmr_reader.main()

    assert set(handlers) == {signal.SIGINT, signal.SIGTERM}
    handlers[signal.SIGTERM](signal.SIGTERM, None)
    assert dsmr_reader.stopper.is_set()


def test_startup_failure_exits(mocker):
    mocker.patch("config.read_config", side_effect=ValueError("bad config"))
    mock_supervisor_class = mocker.patch("dsmr_reader.Supervisor")
    mocker.patch("signal.signal")
    mocker.patch("dsmr_reader.logger", MagicMock())

    with pytest.raises(SystemExit) as exc:
        dsmr_reader.main()

    assert exc.value.code == 1
    mock_supervisor_class.assert_not_called()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
