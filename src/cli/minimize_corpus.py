import os

from utils.logging import setup_logging, get_logger
from configs import corpus
from argparsers.baseparser import BaseParser
from dataservice.trace_store import TraceStore
from resampling.undersampling.corpus_minimizer import (
    CorpusMinimizer,
    MinimizeOptions,
    EmptyCorpusError,
    CorpusMinimizationError,
)
from resampling.undersampling.svd_reducer import SVDReducer


logger = get_logger(__name__)


def build_parser() -> BaseParser:
    parser = BaseParser(prog="seedmin", description="Reduce a fuzzing seed corpus to one representative per coverage cluster "
                                    "(TruncatedSVD projection + mean-shift clustering)")
    parser.add_argument('--seed-dir', '-i', type=str, required=True, help='Directory of input seed files', group="input")
    parser.add_argument('--trace-dir', '-t', type=str, required=True,
                        help='Directory holding one coverage trace record per seed (<seed name><suffix>)', group="input")
    parser.add_argument('--output-dir', '-o', type=str, required=True, help='Destination corpus directory', group="output")
    parser.add_argument('--feature-width', type=int, default=corpus.FEATURE_WIDTH,
                        help='Feature slots per trace record, excluding the trailing field', group="input")
    parser.add_argument('--delimiter', type=str, default=corpus.TRACE_DELIMITER, help='Trace field delimiter', group="input")
    parser.add_argument('--trace-suffix', type=str, default=corpus.TRACE_SUFFIX,
                        help='Suffix appended to the seed name to locate its trace file', group="input")
    parser.add_argument('--sample-cap', type=int, default=corpus.SAMPLE_CAP,
                        help='Max vectors sampled to fit the projection', group="projection")
    parser.add_argument('--batch-size', type=int, default=corpus.TRANSFORM_BATCH_SIZE,
                        help='Vectors per transform batch', group="projection")
    parser.add_argument('--quantile', type=float, default=corpus.BANDWIDTH_QUANTILE,
                        help='Neighbour quantile for bandwidth estimation', group="clustering")
    parser.add_argument('--damping', type=float, default=corpus.BANDWIDTH_DAMPING,
                        help='Estimated bandwidth is divided by this factor', group="clustering")
    parser.add_argument('--n-per-cluster', type=int, default=corpus.N_PER_CLUSTER,
                        help='Representatives per cluster', group="selection")
    parser.add_argument('--strategy', type=str, default='random', choices=corpus.SELECTION_STRATEGIES,
                        help='random: uniform pick per cluster; nearest: closest to cluster center', group="selection")
    parser.add_argument('--bandwidth-samples', type=int, default=corpus.BANDWIDTH_SAMPLES,
                        help='Max distinct points used to estimate the bandwidth', group="clustering")
    parser.add_argument('--no-bin-seeding', action='store_true', help='Seed mean-shift from every point instead of bins', group="clustering")
    parser.add_argument('--seed', type=int, default=corpus.RANDOM_STATE, help='Random seed for reproducible runs', group="selection")
    parser.add_argument('--report', type=str, default=None,
                        help=f'Write per-seed cluster CSV here (e.g. {corpus.REPORT_FILENAME})', group="output")
    parser.add_argument('--save-model', type=str, default=None,
                        help=f'Save the fitted reducer with joblib (e.g. {corpus.MODEL_FILENAME})', group="projection")
    parser.add_argument('--load-model', type=str, default=None, help='Reuse a previously saved reducer instead of fitting', group="projection")
    parser.add_argument('--allow-nonempty-output', action='store_true',
                        help='Do not require the output directory to be empty', group="output")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)

    logger.debug(f"Minimize hyperparameters: sample_cap={args.sample_cap}, batch_size={args.batch_size}, quantile={args.quantile}, damping={args.damping}, bandwidth_samples={args.bandwidth_samples}, n_per_cluster={args.n_per_cluster}, strategy={args.strategy}, seed={args.seed}")

    if not os.path.isdir(args.seed_dir):
        raise SystemExit(f"Seed directory not found: {args.seed_dir}")
    if not os.path.isdir(args.trace_dir):
        raise SystemExit(f"Trace directory not found: {args.trace_dir}")
    if os.path.isdir(args.output_dir) and os.listdir(args.output_dir) and not args.allow_nonempty_output:
        raise SystemExit(f"Output directory is not empty: {args.output_dir} (use --allow-nonempty-output)")
    if os.path.abspath(args.output_dir) == os.path.abspath(args.seed_dir):
        raise SystemExit("Output directory must differ from the seed directory")
    if args.save_model and args.load_model:
        raise SystemExit("--save-model and --load-model are mutually exclusive: a loaded reducer is not refitted")

    store = TraceStore(args.seed_dir, args.trace_dir, feature_width=args.feature_width,
                       delimiter=args.delimiter, trace_suffix=args.trace_suffix)
    store.discover()

    reducer = None
    if args.load_model:
        try:
            reducer = SVDReducer.load(args.load_model)
        except (FileNotFoundError, ValueError) as e:
            raise SystemExit(str(e))

    options = MinimizeOptions(
        sample_cap=args.sample_cap,
        batch_size=args.batch_size,
        quantile=args.quantile,
        damping=args.damping,
        bin_seeding=not args.no_bin_seeding,
        bandwidth_samples=args.bandwidth_samples,
        n_per_cluster=args.n_per_cluster,
        strategy=args.strategy,
        random_state=args.seed,
    )
    try:
        minimizer = CorpusMinimizer(store, options, reducer=reducer)
        result = minimizer.minimize(args.output_dir, report_path=args.report)
    except EmptyCorpusError as e:
        logger.warning(f"Nothing to do: {e}")
        return 0
    except (CorpusMinimizationError, ValueError, OSError) as e:
        raise SystemExit(f"Corpus minimization failed: {e}")

    if args.save_model:
        try:
            minimizer.reducer.save(args.save_model)
        except OSError as e:
            raise SystemExit(f"Could not save reducer: {e}")

    logger.info(f"Done: {len(store)} seeds ({len(store.dropped)} dropped) -> {result.n_clusters} clusters -> {len(result.selected)} seeds in {args.output_dir}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
