"""Extraction routing: cheap local text first, or straight to the vision model."""

from src.core.models.enums import ExtractionMode, ExtractionStrategy
from src.core.observability import NULL_SINK, ObservabilitySink

# PDFs below this size are assumed text-native; at or above it they are
# assumed scan-heavy and go to the vision model first.
TEXT_EXTRACTION_THRESHOLD_BYTES = 100_000

_ATTEMPT_ORDER = {
    ExtractionStrategy.text_first: (ExtractionMode.text, ExtractionMode.vision),
    ExtractionStrategy.vision_required: (ExtractionMode.vision, ExtractionMode.text),
}


def choose_strategy(file_size: int, sink: ObservabilitySink = NULL_SINK) -> ExtractionStrategy:
    if file_size < 0:
        raise ValueError(f"file_size must be non-negative, got {file_size}")
    if file_size < TEXT_EXTRACTION_THRESHOLD_BYTES:
        strategy = ExtractionStrategy.text_first
    else:
        strategy = ExtractionStrategy.vision_required
    sink.event(
        "router.strategy",
        file_size=file_size,
        threshold=TEXT_EXTRACTION_THRESHOLD_BYTES,
        strategy=strategy.value,
    )
    return strategy


def attempt_order(strategy: ExtractionStrategy) -> tuple[ExtractionMode, ...]:
    """Both modes, in the order they should be tried. Routing never drops one."""
    return _ATTEMPT_ORDER[ExtractionStrategy(strategy)]
