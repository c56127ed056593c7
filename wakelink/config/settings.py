from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel


class AudioSettings(BaseModel):
    device_input: str
    queue_max_frames: int


class WakeWordSettings(BaseModel):
    keywords: list[str]
    sensitivities: list[float]


class RealtimeSettings(BaseModel):
    model: str
    modalities: list[str]
    instructions: str
    send_queue_max: int


class TimeoutSettings(BaseModel):
    silence_ms: int
    connect_ms: int
    close_ms: int
    shutdown_ms: int


class DebuggingSettings(BaseModel):
    history_max: int


class AppSettings(BaseModel):
    audio: AudioSettings
    wakeword: WakeWordSettings
    realtime: RealtimeSettings
    timeouts: TimeoutSettings
    debugging: DebuggingSettings


class Credentials(BaseModel):
    openai_api_key: str
    porcupine_access_key: str


class MissingCredentialsError(RuntimeError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(", ".join(missing) + " must be set")
        self.missing = missing


_DEF_YAML = Path(__file__).with_name("default.yaml")

# raised by load_settings for unreadable, malformed or invalid configuration
CONFIG_ERRORS = (OSError, ValueError, yaml.YAMLError)

# env var -> (section, key, cast)
_ENV_OVERRIDES = {
    "WAKE_KEYWORD": ("wakeword", "keywords", lambda v: [k.strip() for k in v.split(",") if k.strip()]),
    "REALTIME_MODEL": ("realtime", "model", str),
    "SILENCE_TIMEOUT_MS": ("timeouts", "silence_ms", int),
}


def _load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _merge_env(data: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    for name, (section, key, cast) in _ENV_OVERRIDES.items():
        value = env.get(name)
        if value:
            data.setdefault(section, {})[key] = cast(value)
    keywords = data.get("wakeword", {}).get("keywords", [])
    sensitivities = data.get("wakeword", {}).get("sensitivities", [])
    if keywords and len(sensitivities) != len(keywords):
        # one sensitivity per keyword, reuse the first configured value
        default = sensitivities[0] if sensitivities else 0.5
        data["wakeword"]["sensitivities"] = [default] * len(keywords)
    return data


def load_settings(path: Optional[Path] = None, env: Optional[Mapping[str, str]] = None) -> AppSettings:
    env = os.environ if env is None else env
    if path is None and env.get("WAKELINK_CONFIG"):
        path = Path(env["WAKELINK_CONFIG"])
    data = _load_yaml(path or _DEF_YAML)
    data = _merge_env(data, env)
    return AppSettings(**data)


def load_credentials(env: Optional[Mapping[str, str]] = None) -> Credentials:
    env = os.environ if env is None else env
    names = {"openai_api_key": "OPENAI_API_KEY", "porcupine_access_key": "PORCUPINE_ACCESS_KEY"}
    missing = [var for var in names.values() if not env.get(var)]
    if missing:
        raise MissingCredentialsError(missing)
    return Credentials(**{field: env[var] for field, var in names.items()})
