from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from .constants import (
    DEFAULT_INTER_STEP_DELAY,
    DEFAULT_LOG_LIMIT,
    DEFAULT_MIN_STEP_DURATION,
    DEFAULT_PARALLEL_FAILURE_SAMPLE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_TICKS,
    DEFAULT_STOP_TIMEOUT,
    DEFAULT_TRAINING_POLL_INTERVAL,
)


class CollaboratorConfig(BaseModel):
    """Configuration for the HTTP collaborator."""

    base_url: str = "http://localhost:8888/.netlify/functions"
    timeout: float = 30.0
    jobs_endpoint: str = "seo-background-jobs"
    token: Optional[str] = None


class StoreConfig(BaseModel):
    """Snapshot store settings. No URL selects the in-memory store."""

    url: Optional[str] = None


class WizardSettings(BaseModel):
    """Pacing, polling and log settings for a wizard run."""

    min_step_duration: float = Field(DEFAULT_MIN_STEP_DURATION, ge=0)
    inter_step_delay: float = Field(DEFAULT_INTER_STEP_DELAY, ge=0)
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, ge=0)
    training_poll_interval: float = Field(DEFAULT_TRAINING_POLL_INTERVAL, ge=0)
    poll_ticks: int = Field(DEFAULT_POLL_TICKS, ge=1)
    log_limit: int = Field(DEFAULT_LOG_LIMIT, ge=1)
    parallel_failure_sample: int = Field(DEFAULT_PARALLEL_FAILURE_SAMPLE, ge=0)
    stop_timeout: float = Field(DEFAULT_STOP_TIMEOUT, ge=0)


class SetupFlowConfig(BaseModel):
    """Top-level configuration model."""

    collaborator: CollaboratorConfig = Field(default_factory=CollaboratorConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    wizard: WizardSettings = Field(default_factory=WizardSettings)


def load_config(path: Optional[str] = None) -> SetupFlowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to SETUPFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("SETUPFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = SetupFlowConfig(**data)
    else:
        config = SetupFlowConfig()

    env_store_url = os.getenv("SETUPFLOW_STORE_URL") or os.getenv("DATABASE_URL")
    if env_store_url:
        config.store.url = env_store_url
    env_api_url = os.getenv("SETUPFLOW_API_URL")
    if env_api_url:
        config.collaborator.base_url = env_api_url
    env_token = os.getenv("SETUPFLOW_API_TOKEN")
    if env_token:
        config.collaborator.token = env_token
    return config
