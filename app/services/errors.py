class StoreError(Exception):
    """Base class for failures of the Drive-backed bookmark store."""


class StoreUnavailable(StoreError):
    """No usable Google credential is present for the caller."""


class StoreCorrupt(StoreError):
    """The stored bookmark document could not be parsed."""


class RemoteCallFailed(StoreError):
    """Talking to the Drive API failed at the transport level."""


class FolderFallbackMissing(StoreError):
    """A deleted folder's bookmarks have no remaining folder to move to."""


class NotFound(Exception):
    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class InvalidFolderPassword(Exception):
    pass


class MetadataFetchFailed(Exception):
    pass
