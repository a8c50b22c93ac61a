from .filters import should_include, apply_filters
from .coverage import apply_coverage, apply_count_override
from .duplicates import DuplicateChecker
from .extended_support import EngineVersionIndex, apply_extended_support_exclusion, is_in_extended_support
from .limits import apply_instance_limit
from .runner import RecommendationPipeline, PipelineResult, StageReport

__all__ = [
    'should_include', 'apply_filters',
    'apply_coverage', 'apply_count_override',
    'DuplicateChecker',
    'EngineVersionIndex', 'apply_extended_support_exclusion', 'is_in_extended_support',
    'apply_instance_limit',
    'RecommendationPipeline', 'PipelineResult', 'StageReport',
]
