import logging
from unittest.mock import MagicMock, patch

from medchain.logging.logger import Log, _ContextFormatter


class TestContextFormatter:
    def test_appends_sorted_context(self) -> None:
        record = logging.makeLogRecord(
            {"msg": "Envelope stored", "ingestion_id": "abc", "cid": "bafkreiabc"}
        )
        formatted = _ContextFormatter("%(message)s").format(record)
        assert formatted == "Envelope stored | cid=bafkreiabc ingestion_id=abc"

    def test_timestamp_is_not_context(self) -> None:
        record = logging.makeLogRecord({"msg": "Stored", "cid": "bafkreiabc"})
        formatted = _ContextFormatter("%(asctime)s %(message)s").format(record)
        assert formatted.endswith("Stored | cid=bafkreiabc")

    def test_plain_message_without_context(self) -> None:
        record = logging.makeLogRecord({"msg": "Upload API started"})
        assert _ContextFormatter("%(message)s").format(record) == "Upload API started"


class TestLog:
    def test_context_passed_as_extra(self) -> None:
        with patch.object(Log, "_logger", MagicMock()) as mock_logger:
            Log.info("Fingerprint anchored", tx_ref="0xabc", block_ref=7)

        mock_logger.info.assert_called_once_with(
            "Fingerprint anchored", extra={"tx_ref": "0xabc", "block_ref": 7}
        )

    def test_levels_route_to_logger(self) -> None:
        with patch.object(Log, "_logger", MagicMock()) as mock_logger:
            Log.warning("w")
            Log.error("e")
            Log.debug("d")

        mock_logger.warning.assert_called_once_with("w", extra={})
        mock_logger.error.assert_called_once_with("e", extra={})
        mock_logger.debug.assert_called_once_with("d", extra={})

    def test_configure_sets_level_once(self) -> None:
        Log.configure("debug")
        Log.configure("info")

        logger = logging.getLogger("medchain")
        assert logger.level == logging.INFO
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, _ContextFormatter)
