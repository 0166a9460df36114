from .config_loader import ConfigLoader, MatchSettings, load_match_settings

# NOTE: Loading config at import time preserves backward compatibility for
# modules that expect a populated CONFIG without calling a loader.
CONFIG = ConfigLoader.load_config()

__all__ = ["CONFIG", "ConfigLoader", "MatchSettings", "load_match_settings"]
