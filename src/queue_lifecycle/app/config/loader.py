from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import yaml

from queue_lifecycle.app.models.config import ConsumerConfig

SUPPORTED_SCHEMA_VERSIONS = {1}


def load_consumer_config(path: str | Path) -> ConsumerConfig:
    data: Dict[str, Any]
    with open(path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    config = ConsumerConfig.model_validate(data)
    if config.schema_version not in SUPPORTED_SCHEMA_VERSIONS:
        raise ValueError(f"Unsupported schema_version {config.schema_version}")
    return config


def resolve_consumer_config() -> ConsumerConfig:
    path = os.getenv("QUEUE_CONFIG_PATH")
    if not path:
        return ConsumerConfig.from_env()
    config = load_consumer_config(path)
    overrides = {
        "region": os.getenv("QUEUE_REGION"),
        "endpoint_url": os.getenv("QUEUE_ENDPOINT_URL"),
    }
    overrides = {key: value for key, value in overrides.items() if value}
    if overrides:
        config = config.model_copy(update=overrides)
    return config
