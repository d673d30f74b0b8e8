# Coverage trace layout
# One trace record per seed: FEATURE_WIDTH edge/tuple counters followed by one
# trailing non-feature field (hit total / checksum) that is dropped on load.
FEATURE_WIDTH = 65536
TRACE_DELIMITER = ","
# Trace file for seed <name> is expected at <trace_dir>/<name><TRACE_SUFFIX>
TRACE_SUFFIX = ""

# Projection fit
SAMPLE_CAP = 500
TRANSFORM_BATCH_SIZE = 100
N_COMPONENTS = 2

# Mean-shift bandwidth
BANDWIDTH_QUANTILE = 0.2
BANDWIDTH_DAMPING = 2.5
# Distinct points used for the neighbour-distance estimate
BANDWIDTH_SAMPLES = 2000

# Selection
N_PER_CLUSTER = 1
SELECTION_STRATEGIES = ['random', 'nearest']

# None leaves every stage unseeded; pass an int for reproducible runs
RANDOM_STATE = None

REPORT_FILENAME = "seedmin_clusters.csv"
MODEL_FILENAME = "svd_reducer.pkl"


def trace_name_for_seed(seed_name: str, suffix: str = TRACE_SUFFIX) -> str:
    return f"{seed_name}{suffix}"
