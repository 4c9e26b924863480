"""Errors raised by a build cycle. None of them are recovered locally."""


class CSSBlocksError(Exception):
    """Base class for build cycle failures."""
    pass


class AnalysisDeserializationError(CSSBlocksError):
    """An analysis record is malformed or references an unresolvable block."""
    pass


class BlockResolutionError(CSSBlocksError):
    """A block's source could not be located or parsed."""

    def __init__(self, identifier: str, reason: str):
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Cannot resolve block {identifier}: {reason}")


class BlockCompileError(CSSBlocksError):
    """A block's raw stylesheet failed to compile."""
    pass


class OptimizationError(CSSBlocksError):
    """The optimizer rejected its inputs."""
    pass


class MissingInputError(CSSBlocksError):
    """An expected input file is not present in a tree."""
    pass
