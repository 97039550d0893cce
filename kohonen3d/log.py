import logging


__all__ = [
    "getname",
    "get_logger",
    "setup_logging",
]


def getname(o: object) -> str:
    """Returns the class name of `o`, or the name of `o` itself for classes and functions."""
    name = getattr(o, "__name__", None)
    if name is None:
        name = type(o).__name__
    return name


def get_logger(o: object) -> logging.Logger:
    """
    Returns a logger named after `o`.

    Args:
        o: A logger name, or any object whose class name is used.
    """
    name = o if isinstance(o, str) else f"kohonen3d.{getname(o)}"
    return logging.getLogger(name)


def setup_logging(verbose: bool = False) -> None:
    """Configures the root handler used by the command-line entry point."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
