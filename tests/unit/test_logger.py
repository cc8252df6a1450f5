import logging

from inspection_import.logging.logger import _ContextFormatter


def _record(message: str, **context: object) -> logging.LogRecord:
    record = logging.makeLogRecord({"msg": message, "levelname": "INFO"})
    record.__dict__.update(context)
    return record


class TestContextFormatter:
    def test_plain_message_has_no_context_suffix(self) -> None:
        formatter = _ContextFormatter("[%(levelname)s] %(message)s")

        assert formatter.format(_record("Submission session closed")) == "[INFO] Submission session closed"

    def test_context_is_appended_in_key_order(self) -> None:
        formatter = _ContextFormatter("%(message)s")

        line = formatter.format(_record("Submission started", size=12, generation=3))

        assert line == "Submission started | generation=3 size=12"
