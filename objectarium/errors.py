class ObjectariumError(Exception):
    """Base error of bucket operations. Carries the HTTP status it maps to."""

    status_code = 400
    kind = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class NotFound(ObjectariumError):
    status_code = 404
    kind = "not_found"


class LimitExceeded(ObjectariumError):
    status_code = 413
    kind = "limit_exceeded"

    def __init__(self, limit: str, maximum: int):
        super().__init__(f"{limit} limit exceeded (max {maximum})")
        self.limit = limit
        self.maximum = maximum


class Unauthorized(ObjectariumError):
    status_code = 403
    kind = "unauthorized"


class InvalidInput(ObjectariumError):
    status_code = 400
    kind = "invalid_input"


class UnsupportedAlgorithm(InvalidInput):
    def __init__(self, algorithm: str):
        super().__init__(f"Unsupported compression algorithm: {algorithm}")
        self.algorithm = algorithm


class BucketAlreadyExists(ObjectariumError):
    status_code = 409
    kind = "already_exists"


class ObjectAlreadyStored(ObjectariumError):
    status_code = 409
    kind = "already_exists"
