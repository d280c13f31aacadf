"""Domain exceptions shared by storage, pipeline and API layers."""


class NotFoundError(LookupError):
    """A record does not exist or is not owned by the requesting user."""


class SourceNotFoundError(NotFoundError):
    pass


class TranscriptNotFoundError(NotFoundError):
    pass


class ActionItemNotFoundError(NotFoundError):
    pass


class ClientNotFoundError(NotFoundError):
    pass


class EmailNotFoundError(NotFoundError):
    pass


class SourceBusyError(Exception):
    """The source is already being processed."""


class InvalidStatusTransition(ValueError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot move source from '{current}' to '{target}'")
        self.current = current
        self.target = target
