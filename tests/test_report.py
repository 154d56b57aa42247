"""
Tests for the error reporter (report.py).
"""

from errors import PublishError
from report import ErrorReporter


def test_report_keeps_last_error():
    reporter = ErrorReporter()
    assert reporter.last_error is None

    reporter.report(PublishError("broker gone"))
    reporter.report(PublishError("still gone"))

    assert reporter.last_error == "PublishError: still gone"
    assert reporter.error_count == 2


def test_report_logs_category(mocker):
    mock_logger = mocker.patch("report.logger")
    ErrorReporter().report(PublishError("broker gone"))
    mock_logger.error.assert_called_once_with("[MQTT] broker gone")


def test_report_unexpected_exception_keeps_traceback(mocker):
    mock_logger = mocker.patch("report.logger")
    error = KeyError("bug")
    ErrorReporter().report(error)
    assert mock_logger.error.call_args.kwargs["exc_info"] is error
