class ObjectStoreError(Exception):
    """
    The bucket could not answer: network trouble, throttling, bad credentials and the like.
    A missing object is not an error; the object store returns None for that.
    """

    def __init__(self, message: str, key: str | None = None):
        super().__init__(message)
        self.message = message
        self.key = key

    def __str__(self) -> str:
        if self.key:
            return f"{self.message} (key={self.key})"
        return self.message
