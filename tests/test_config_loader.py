import json
import logging
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from chatctx.config import Config, load_config, save_config
from chatctx.config.schema import ContextWindowSettings


def test_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.json")
    assert config.entities.default_confidence == 0.9
    assert config.entities.confidence_threshold == 0.7
    assert config.context_window.max_tokens == 16_000
    assert config.logging.json_output is True


def test_camel_case_file_is_accepted(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "entities": {"confidenceThreshold": 0.8, "normalization": {"lowercase": False}},
                "contextWindow": {"maxTokens": 8000, "responseReservedTokens": 2000},
            }
        ),
        encoding="utf-8",
    )
    config = load_config(path)

    assert config.entities.confidence_threshold == 0.8
    assert config.entities.normalization.to_config().lowercase is False
    window = config.context_window.to_window()
    assert window.max_tokens == 8000
    assert window.available_for_messages() == 8000 - 800 - 2000 - 300


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"contextWindow": {"maxTokens": 1000}}),
        json.dumps({"entities": {"defaultConfidence": 2}}),
    ],
)
def test_bad_file_falls_back_to_defaults(tmp_path: Path, content: str) -> None:
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")
    assert load_config(path) == Config()


def test_reserved_tokens_over_budget_rejected() -> None:
    with pytest.raises(ValidationError):
        ContextWindowSettings(max_tokens=1000, response_reserved_tokens=900, system_prompt_tokens=200)


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"
    config = Config.model_validate({"entities": {"defaultConfidence": 0.75}})
    save_config(config, path)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved["entities"]["defaultConfidence"] == 0.75
    assert "contextWindow" in saved
    assert load_config(path) == config


def test_settings_build_runtime_objects() -> None:
    config = Config()
    ctx = config.entities.merge_context("msg-1")
    assert ctx.message_id == "msg-1"
    assert ctx.confidence_threshold == 0.7
    assert config.entities.empty_aggregate().is_empty()


def test_logging_settings_apply(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"logging": {"jsonOutput": False, "level": "debug"}}), encoding="utf-8")
    root = logging.getLogger("chatctx")
    try:
        load_config(path).logging.apply()
        assert root.level == logging.DEBUG
    finally:
        root.handlers.clear()
        root.setLevel(logging.NOTSET)
        root.propagate = True
        structlog.reset_defaults()


def test_merge_context_carries_normalization() -> None:
    config = Config.model_validate({"entities": {"normalization": {"lowercase": False}}})
    ctx = config.entities.merge_context("msg-1")
    assert ctx.normalization.lowercase is False
