"""Load settings.yaml into typed dataclasses. Checks the API token at startup."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class ApiConfig:
    base_url: str
    token_env: str
    timeout_sec: float


@dataclass
class RetryConfig:
    max_attempts: int = 3
    base_delay_sec: float = 2.0
    delay_step_sec: float = 1.0


@dataclass
class AgentConfig:
    key: str
    name: str
    chat_id: str
    is_host: bool = False
    style: str = "white"


@dataclass
class PromptsConfig:
    opening: str
    host_evaluation: str
    format_warning: str
    follow_up: str
    manual_question: str
    manual_continue: str
    intervention: str
    reference_block: str


@dataclass
class DefaultsConfig:
    max_rounds: int
    output_dir: Path
    host_context: str = "full"   # "full" or "incremental"


@dataclass
class AppConfig:
    api: ApiConfig
    retry: RetryConfig
    defaults: DefaultsConfig
    agents: list[AgentConfig]
    prompts: PromptsConfig
    token_available: bool = False


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ValueError
    if the agent list does not name exactly one host. A missing API token is
    only logged; callers check ``token_available``.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    api_raw = raw["api"]
    api = ApiConfig(
        base_url=str(api_raw["base_url"]).rstrip("/"),
        token_env=str(api_raw["token_env"]),
        timeout_sec=float(api_raw["timeout_sec"]),
    )

    retry_raw = raw.get("retry", {})
    retry = RetryConfig(
        max_attempts=int(retry_raw.get("max_attempts", 3)),
        base_delay_sec=float(retry_raw.get("base_delay_sec", 2.0)),
        delay_step_sec=float(retry_raw.get("delay_step_sec", 1.0)),
    )
    if retry.max_attempts < 1:
        raise ValueError(f"retry.max_attempts must be >= 1, got {retry.max_attempts}")

    defaults_raw = raw["defaults"]
    host_context = str(defaults_raw.get("host_context", "full"))
    if host_context not in ("full", "incremental"):
        raise ValueError(f"defaults.host_context must be 'full' or 'incremental', got {host_context!r}")
    defaults = DefaultsConfig(
        max_rounds=int(defaults_raw["max_rounds"]),
        output_dir=Path(defaults_raw["output_dir"]),
        host_context=host_context,
    )

    agents: list[AgentConfig] = []
    for key, agent_raw in raw["agents"].items():
        agents.append(
            AgentConfig(
                key=str(key),
                name=str(agent_raw.get("name", key)),
                chat_id=str(agent_raw["chat_id"]),
                is_host=bool(agent_raw.get("host", False)),
                style=str(agent_raw.get("style", "white")),
            )
        )

    hosts = [a.key for a in agents if a.is_host]
    if len(hosts) != 1:
        raise ValueError(f"Exactly one host agent is required, found {len(hosts)}: {hosts}")

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        opening=prompts_raw["opening"],
        host_evaluation=prompts_raw["host_evaluation"],
        format_warning=prompts_raw["format_warning"],
        follow_up=prompts_raw["follow_up"],
        manual_question=prompts_raw["manual_question"],
        manual_continue=prompts_raw["manual_continue"],
        intervention=prompts_raw["intervention"],
        reference_block=prompts_raw["reference_block"],
    )

    token_available = bool(os.environ.get(api.token_env, "").strip())
    if token_available:
        logger.info("API token found in %s", api.token_env)
    else:
        logger.info("No API token, set %s in .env", api.token_env)

    return AppConfig(
        api=api,
        retry=retry,
        defaults=defaults,
        agents=agents,
        prompts=prompts,
        token_available=token_available,
    )
