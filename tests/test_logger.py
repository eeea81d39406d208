import json

from loguru import logger

from story_reviser.utils import logger as logger_module
from story_reviser.utils.logger import generation_logger, setup_logger


def test_audit_file_records_generation_id(tmp_path, monkeypatch):
    monkeypatch.setattr(logger_module, "_configured", False)
    audit = tmp_path / "logs" / "audit.jsonl"

    setup_logger("WARNING", audit)
    generation_logger("gen-42").info("Accepted generation gen-42")
    logger.info("unbound message")
    logger.remove()

    records = [json.loads(line)["record"] for line in audit.read_text().splitlines()]
    assert records[0]["extra"]["generation_id"] == "gen-42"
    assert records[0]["message"] == "Accepted generation gen-42"
    assert records[1]["extra"]["generation_id"] == "-"


def test_setup_is_idempotent(monkeypatch):
    monkeypatch.setattr(logger_module, "_configured", True)
    assert setup_logger("INFO") is logger
