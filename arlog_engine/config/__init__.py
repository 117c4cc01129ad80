from arlog_engine.config.settings import EngineConfig

__all__ = ["EngineConfig"]
