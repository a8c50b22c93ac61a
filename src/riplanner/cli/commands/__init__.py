from . import config, plan

__all__ = ['config', 'plan']
