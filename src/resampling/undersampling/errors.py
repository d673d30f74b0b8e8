class CorpusMinimizationError(RuntimeError):
    """Base class for failures that stop a corpus minimization run."""


class EmptyCorpusError(CorpusMinimizationError):
    """No seed with a valid trace is available; there is nothing to do."""


class InsufficientSampleError(CorpusMinimizationError, ValueError):
    """Too few vectors to fit the rank-2 projection."""
