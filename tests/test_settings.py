"""Tests for settings and credential loading."""

import pytest

from wakelink.config.settings import MissingCredentialsError, load_credentials, load_settings


def test_default_settings():
    settings = load_settings(env={})

    assert settings.timeouts.silence_ms == 5000
    assert settings.wakeword.keywords == ["computer"]
    assert settings.wakeword.sensitivities == [0.7]
    assert settings.realtime.modalities == ["text", "audio"]
    assert settings.realtime.model.startswith("gpt-4o-realtime")
    assert settings.realtime.instructions


def test_env_overrides():
    settings = load_settings(
        env={"WAKE_KEYWORD": "jarvis, computer", "REALTIME_MODEL": "gpt-4o-realtime-preview", "SILENCE_TIMEOUT_MS": "3000"}
    )

    assert settings.wakeword.keywords == ["jarvis", "computer"]
    assert settings.wakeword.sensitivities == [0.7, 0.7]
    assert settings.realtime.model == "gpt-4o-realtime-preview"
    assert settings.timeouts.silence_ms == 3000


def test_config_path_from_env(tmp_path):
    config = tmp_path / "custom.yaml"
    config.write_text(
        """
audio: {device_input: "USB Mic", queue_max_frames: 10}
wakeword: {keywords: [porcupine], sensitivities: [0.5]}
realtime: {model: m, modalities: [text], instructions: hi, send_queue_max: 4}
timeouts: {silence_ms: 1000, connect_ms: 500, close_ms: 100, shutdown_ms: 200}
debugging: {history_max: 2}
""",
        encoding="utf-8",
    )

    settings = load_settings(env={"WAKELINK_CONFIG": str(config)})

    assert settings.audio.device_input == "USB Mic"
    assert settings.wakeword.keywords == ["porcupine"]
    assert settings.timeouts.silence_ms == 1000


def test_credentials_present():
    credentials = load_credentials({"OPENAI_API_KEY": "sk-test", "PORCUPINE_ACCESS_KEY": "pv-test"})

    assert credentials.openai_api_key == "sk-test"
    assert credentials.porcupine_access_key == "pv-test"


@pytest.mark.parametrize(
    "env, missing",
    [
        ({}, ["OPENAI_API_KEY", "PORCUPINE_ACCESS_KEY"]),
        ({"OPENAI_API_KEY": "sk-test"}, ["PORCUPINE_ACCESS_KEY"]),
        ({"PORCUPINE_ACCESS_KEY": "pv", "OPENAI_API_KEY": ""}, ["OPENAI_API_KEY"]),
    ],
)
def test_missing_credentials(env, missing):
    with pytest.raises(MissingCredentialsError) as exc:
        load_credentials(env)

    assert exc.value.missing == missing


def test_non_mapping_config_is_rejected(tmp_path):
    config = tmp_path / "list.yaml"
    config.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_settings(env={"WAKELINK_CONFIG": str(config)})
