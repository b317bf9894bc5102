from dataclasses import dataclass

from src.core.config import settings
from src.core.models.enums import ExtractionMode


@dataclass
class ModelConfig:
    provider: str  # "openai", "anthropic"
    model_id: str


def provider_for(model_id: str) -> str:
    if model_id.startswith("claude-"):
        return "anthropic"
    if model_id.startswith(("gpt-", "o1", "o3", "o4")):
        return "openai"
    raise ValueError(f"Unknown model prefix: {model_id}")


def _has_key(provider: str) -> bool:
    if provider == "anthropic":
        return bool(settings.anthropic_api_key)
    return bool(settings.openai_api_key)


def get_model_for_mode(mode: ExtractionMode) -> ModelConfig:
    """Model serving one extraction mode.

    Falls back to ``fallback_extraction_model`` when the primary model's
    provider has no API key configured.
    """
    if ExtractionMode(mode) == ExtractionMode.text:
        model_id = settings.text_extraction_model
    else:
        model_id = settings.extraction_model
    provider = provider_for(model_id)
    if not _has_key(provider):
        fallback = settings.fallback_extraction_model
        fallback_provider = provider_for(fallback)
        if _has_key(fallback_provider):
            return ModelConfig(provider=fallback_provider, model_id=fallback)
    return ModelConfig(provider=provider, model_id=model_id)
