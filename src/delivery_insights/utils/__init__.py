from .accumulators import CorrelationAccumulator, Summary, top_n
from .partitioning import parallel_map, partition_by_key

__all__ = [
    'CorrelationAccumulator',
    'Summary',
    'top_n',
    'parallel_map',
    'partition_by_key',
]
