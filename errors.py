"""Error taxonomy shared by the stores and the HTTP layer.

Every error carries the HTTP status it maps to; the handlers registered in
``main`` turn them into the ``{success: false, message}`` envelope.
"""


class ShopError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class Unauthenticated(ShopError):
    status_code = 401


class ValidationError(ShopError):
    status_code = 400


class NotFound(ShopError):
    status_code = 404


class Conflict(ShopError):
    status_code = 400


class FileTooLarge(ShopError):
    status_code = 413


class UploadFailure(ShopError):
    status_code = 500


class ServiceUnavailable(ShopError):
    status_code = 503
