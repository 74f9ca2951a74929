# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_rp

import logging
import os
from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from pydantic import SecretStr

from coreason_rp.config import RelyingPartyConfig
from coreason_rp.relying_party import RelyingPartyAsync
from coreason_rp.utils.logger import anonymize, configure_logging, logger


@pytest.fixture
def clean_logger() -> Generator[None, None, None]:
    """Ensure logger is reset before and after tests."""
    logger.remove()
    yield
    logger.remove()


@pytest.mark.usefixtures("clean_logger")
def test_text_and_json_toggling(capsys: pytest.CaptureFixture[str]) -> None:
    with patch.dict(os.environ, {"COREASON_RP_LOG_JSON": "false"}):
        configure_logging()
        logger.info("Text Log")
        captured = capsys.readouterr()
        assert "Text Log" in captured.err
        assert '"text":' not in captured.err

    with patch.dict(os.environ, {"COREASON_RP_LOG_JSON": "true"}):
        configure_logging()
        logger.info("JSON Log")
        captured = capsys.readouterr()
        assert '"text":' in captured.out
        assert "JSON Log" in captured.out
        assert not captured.err


@pytest.mark.usefixtures("clean_logger")
def test_invalid_level_falls_back_to_info(capsys: pytest.CaptureFixture[str]) -> None:
    with patch.dict(os.environ, {"COREASON_RP_LOG_LEVEL": "CHATTY"}):
        configure_logging()
        logger.debug("hidden")
        logger.info("shown")
    err = capsys.readouterr().err
    assert "shown" in err
    assert "hidden" not in err


@pytest.mark.usefixtures("clean_logger")
def test_reconfiguring_does_not_duplicate_sinks() -> None:
    configure_logging()
    count = len(logger._core.handlers)  # type: ignore[attr-defined]
    configure_logging()
    assert len(logger._core.handlers) == count  # type: ignore[attr-defined]


@pytest.mark.usefixtures("clean_logger")
def test_optional_file_sink(tmp_path: Path) -> None:
    log_file = tmp_path / "rp.log"
    with patch.dict(os.environ, {"COREASON_RP_LOG_FILE": str(log_file)}):
        configure_logging()
        logger.info("to file")
        logger.complete()
    logger.remove()
    assert "to file" in log_file.read_text()


@pytest.mark.usefixtures("clean_logger")
def test_stdlib_logging_is_intercepted(capsys: pytest.CaptureFixture[str]) -> None:
    configure_logging()
    logging.getLogger("httpx").warning("from stdlib")
    assert "from stdlib" in capsys.readouterr().err


def test_anonymize_is_salted_and_stable() -> None:
    first = anonymize("user-123", SecretStr("salt-a"))
    assert first == anonymize("user-123", SecretStr("salt-a"))
    assert first != anonymize("user-123", SecretStr("salt-b"))
    assert "user-123" not in first
    assert len(first) == 64


@pytest.mark.asyncio
async def test_secrets_never_logged(config: RelyingPartyConfig, make_client: Any) -> None:
    """Codes, tokens, client secrets and raw subjects stay out of the logs."""
    messages: list[str] = []
    handler_id = logger.add(lambda m: messages.append(str(m)), level="DEBUG")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/userinfo":
            return httpx.Response(200, json={"sub": "user-123"})
        return httpx.Response(200, json={"access_token": "secret-access-token", "token_type": "Bearer"})

    client, _ = make_client(handler)
    try:
        rp = RelyingPartyAsync(config, client=client)
        await rp.handle_callback("https://example.com/callback?state=test-state&code=secret-code")
        await rp.get_user_info("secret-access-token")
    finally:
        logger.remove(handler_id)

    log_text = "\n".join(messages)
    assert "secret-code" not in log_text
    assert "secret-access-token" not in log_text
    assert "test-client-secret" not in log_text
    assert "user-123" not in log_text
    assert anonymize("user-123", config.pii_salt) in log_text
