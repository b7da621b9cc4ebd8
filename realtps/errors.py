"""Exception types shared across the importer, clients and TPS calculation."""

import logging


class RealTpsError(Exception):
    """Base class for every error raised by this package."""


class ClientError(RealTpsError):
    """Transport or protocol failure talking to a chain's RPC node."""


class ConfigError(RealTpsError):
    """Missing or malformed configuration. Fatal at startup."""


class InvariantError(RealTpsError):
    """Local data or a remote node broke an expected invariant.

    Always recoverable: the failing chain is skipped or the job retried.
    """


class TpsOverflowError(RealTpsError):
    """A TPS window's seconds or transaction count does not fit in 32 bits."""


def log_error_chain(logger: logging.Logger, exc: BaseException) -> None:
    """Log an error followed by every exception in its causal chain."""
    logger.error("error: %s", exc)
    seen = {id(exc)}
    source = exc.__cause__ or exc.__context__
    while source is not None and id(source) not in seen:
        seen.add(id(source))
        logger.error("source: %s", source)
        source = source.__cause__ or source.__context__
    logger.debug("traceback:", exc_info=exc)
