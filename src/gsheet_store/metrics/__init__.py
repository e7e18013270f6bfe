from .registry import MetricsRegistry, metrics_registry

__all__ = ["MetricsRegistry", "metrics_registry"]
