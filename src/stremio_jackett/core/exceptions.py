class ResolverError(Exception):
    """Base class for stream resolution failures."""


class InvalidConfig(ResolverError):
    """Request cannot run: missing indexer credentials or no usable queries."""


class CollaboratorUnavailable(ResolverError):
    def __init__(self, collaborator: str, reason: str):
        super().__init__(f"{collaborator} unavailable: {reason}")
        self.collaborator = collaborator
        self.reason = reason


class MalformedRecord(ResolverError):
    """A single indexer record that cannot be turned into a playable source."""
