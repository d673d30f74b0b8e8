import argparse

from utils.logging import get_logger

logger = get_logger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class BaseParser:
    """argparse wrapper shared by the seedmin entry points; always carries --log-level."""

    def __init__(self, description: str, prog: str | None = None):
        self.parser = argparse.ArgumentParser(
            prog=prog,
            description=description,
            formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        )
        self.parser.add_argument("--log-level", "-L", type=str, choices=LOG_LEVELS,
                                 default="INFO", help="Set the logging level")
        self._groups: dict[str, argparse._ArgumentGroup] = {}

    def add_argument(self, *args, group: str | None = None, **kwargs):
        if group is None:
            return self.parser.add_argument(*args, **kwargs)
        if group not in self._groups:
            self._groups[group] = self.parser.add_argument_group(group)
        return self._groups[group].add_argument(*args, **kwargs)

    def parse_args(self, args=None) -> argparse.Namespace:
        ns = self.parser.parse_args(args)
        logger.debug(f"Parsed arguments: {vars(ns)}")
        return ns
