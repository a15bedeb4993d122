"""Custom exceptions for world generation."""


class WorldGenError(Exception):
    """Base exception for world generation errors."""

    pass


class ConfigValidationError(WorldGenError):
    """Raised when generation parameters are invalid.

    Carries every violation found, not just the first one.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        summary = "; ".join(self.errors)
        super().__init__(f"{len(self.errors)} configuration error(s): {summary}")


class StageError(WorldGenError):
    """Raised when a pipeline stage fails after validation."""

    def __init__(self, stage: str, cause: BaseException):
        self.stage = stage
        self.cause = cause
        super().__init__(f"stage '{stage}' failed: {cause}")


class GenerationCancelled(WorldGenError):
    """Raised when a generation run is abandoned between stages."""

    def __init__(self, completed_stage: str | None):
        self.completed_stage = completed_stage
        super().__init__(f"generation cancelled after stage {completed_stage!r}")
