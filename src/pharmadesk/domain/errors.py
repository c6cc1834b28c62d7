class AppError(Exception):
    """Base app error."""


class ValidationError(AppError):
    pass


class StorageReadError(AppError):
    pass


class StorageWriteError(AppError):
    pass


class NotAuthenticatedError(AppError):
    pass


class DeviceIdentityError(AppError):
    pass


class UnknownPresetError(AppError):
    pass


class ImportParseError(AppError):
    pass


class FetchError(AppError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PrinterError(AppError):
    pass
