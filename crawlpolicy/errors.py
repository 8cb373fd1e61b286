class MissingField(ValueError):
    """A required profile field was None or empty at construction."""

    def __init__(self, field: str):
        super().__init__(f"{field} must not be null or empty")
        self.field = field
