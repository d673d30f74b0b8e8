from .errors import CorpusMinimizationError, EmptyCorpusError, InsufficientSampleError
from .vector_sampler import VectorSampler
from .svd_reducer import SVDReducer
from .meanshift import ClusterResult, DensityClusterer
from .seed_selector import SeedSelector
from .corpus_minimizer import CorpusMinimizer, MinimizationResult, MinimizeOptions

__all__ = [
    'CorpusMinimizationError',
    'EmptyCorpusError',
    'InsufficientSampleError',
    'VectorSampler',
    'SVDReducer',
    'ClusterResult',
    'DensityClusterer',
    'SeedSelector',
    'CorpusMinimizer',
    'MinimizationResult',
    'MinimizeOptions',
]
