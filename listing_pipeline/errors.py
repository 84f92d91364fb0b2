# listing_pipeline/errors.py
"""Error taxonomy for the generation pipeline.

AI failures (`AnalysisError`, `MappingError`) are recovered inside the
generation protocol. `StoreError` and its subclass `LinkError` are the only
errors allowed to escape it.
"""


class PipelineError(Exception):
    pass


class AnalysisError(PipelineError):
    """The analysis service threw, timed out, or reported failure."""


class MappingError(PipelineError):
    """The analysis service answered but its payload could not be used."""


class StoreError(PipelineError):
    """A write to the photo or listing store failed."""


class LinkError(StoreError):
    """Photos could not be linked to a durable listing."""


class InvalidTransition(PipelineError):
    def __init__(self, identifier, current, target):
        super().__init__(f"{identifier}: cannot move from {current} to {target}")
        self.identifier = identifier
        self.current = current
        self.target = target


class InvalidIdentifier(ValueError):
    pass


class IdentifierInUse(PipelineError):
    """The SKU already has a generated listing linked to its photos."""
