from .config import configure_logging, load_config, stale_after_ms, validate_config

__all__ = ["configure_logging", "load_config", "stale_after_ms", "validate_config"]
