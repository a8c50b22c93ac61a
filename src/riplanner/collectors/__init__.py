from .rds import EngineVersionCollector

__all__ = ['EngineVersionCollector']
