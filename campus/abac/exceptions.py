class ABACError(Exception):
    """Base class for errors raised while resolving an access decision."""


class SubjectNotFoundError(ABACError):
    def __init__(self, user_id: str):
        super().__init__(f"User '{user_id}' not found")
        self.user_id = user_id


class StoreUnavailableError(ABACError):
    """An attribute, policy, user or audit store could not be read or written."""
