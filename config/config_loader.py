"""Load settings.yaml into typed dataclasses. Checks the provider API key at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

DB_PATH_ENV = "MULTI_AI_DB"


@dataclass
class ProviderConfig:
    api_key_env: str
    base_url: str
    site_url_env: str = "OPENROUTER_SITE_URL"
    site_name_env: str = "OPENROUTER_SITE_NAME"
    timeout_sec: float | None = None


@dataclass
class StorageConfig:
    database_path: Path
    cache_ttl_sec: int = 3600
    history_limit: int = 50


@dataclass
class PromptsConfig:
    refine: str
    synthesis: str
    debate_followup: str
    debate_conclusion: str
    consensus: str
    classification: str
    reasoning: str = ""


@dataclass
class DefaultsConfig:
    models: list[str]
    panel_size: int = 3
    max_rounds: int = 3
    ask_model: str = "deepseek/deepseek-r1"
    synthesizer: str = "anthropic/claude-3.5-sonnet"
    concluder: str = "openai/gpt-4o"
    consensus_model: str = "google/gemini-2.5-pro-preview"
    classifier: str = "openai/gpt-4o-mini"
    derived_temperature: float = 0.3
    output_dir: Path = field(default_factory=lambda: Path("./output"))

    def default_panel(self) -> list[str]:
        """Top-ranked models used when a request names none."""
        return list(self.models[: self.panel_size])


@dataclass
class AppConfig:
    provider: ProviderConfig
    storage: StorageConfig
    defaults: DefaultsConfig
    prompts: PromptsConfig
    provider_available: bool = False


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs a warning when the provider API key is missing but does not raise;
    callers check provider_available.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    provider_raw = raw["provider"]
    timeout = provider_raw.get("timeout_sec")
    provider = ProviderConfig(
        api_key_env=str(provider_raw["api_key_env"]),
        base_url=str(provider_raw["base_url"]),
        site_url_env=str(provider_raw.get("site_url_env", "OPENROUTER_SITE_URL")),
        site_name_env=str(provider_raw.get("site_name_env", "OPENROUTER_SITE_NAME")),
        timeout_sec=float(timeout) if timeout is not None else None,
    )

    storage_raw = raw.get("storage", {})
    db_path = os.environ.get(DB_PATH_ENV, "").strip() or storage_raw.get(
        "database_path", "./data/multi_ai.sqlite3"
    )
    storage = StorageConfig(
        database_path=Path(db_path),
        cache_ttl_sec=int(storage_raw.get("cache_ttl_sec", 3600)),
        history_limit=int(storage_raw.get("history_limit", 50)),
    )

    defaults_raw = raw["defaults"]
    models = [str(m) for m in defaults_raw["models"]]
    if not models:
        raise ValueError("defaults.models must list at least one model")
    defaults = DefaultsConfig(
        models=models,
        panel_size=int(defaults_raw.get("panel_size", 3)),
        max_rounds=int(defaults_raw.get("max_rounds", 3)),
        ask_model=str(defaults_raw.get("ask_model", "deepseek/deepseek-r1")),
        synthesizer=str(defaults_raw["synthesizer"]),
        concluder=str(defaults_raw["concluder"]),
        consensus_model=str(defaults_raw["consensus_model"]),
        classifier=str(defaults_raw["classifier"]),
        derived_temperature=float(defaults_raw.get("derived_temperature", 0.3)),
        output_dir=Path(defaults_raw.get("output_dir", "./output")),
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        refine=prompts_raw["refine"],
        synthesis=prompts_raw["synthesis"],
        debate_followup=prompts_raw["debate_followup"],
        debate_conclusion=prompts_raw["debate_conclusion"],
        consensus=prompts_raw["consensus"],
        classification=prompts_raw["classification"],
        reasoning=prompts_raw.get("reasoning", ""),
    )

    api_key = os.environ.get(provider.api_key_env, "").strip()
    if api_key:
        logger.info("Provider available: openrouter")
    else:
        logger.warning(
            "Provider unavailable (no API key) — set %s in .env",
            provider.api_key_env,
        )

    return AppConfig(
        provider=provider,
        storage=storage,
        defaults=defaults,
        prompts=prompts,
        provider_available=bool(api_key),
    )
