class ValidationError(ValueError):
    """Rejected input, e.g. an empty pet name. Nothing was changed."""


class NotFoundError(LookupError):
    """No pet with the given id."""

    def __init__(self, pet_id: str):
        super().__init__(f"pet not found: {pet_id}")
        self.pet_id = pet_id


class PersistenceWriteFailure(RuntimeError):
    """A snapshot could not be written. In-memory state stays authoritative."""
