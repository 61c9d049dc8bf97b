"""Exceptions raised by the file-management layer"""


class ShargeError(Exception):
    """Base class for all service errors"""


class InvalidPathError(ShargeError):
    """Path escapes the root or cannot be resolved"""


class NotFoundError(ShargeError):
    """Target is missing, or is a directory where a file was expected"""


class UnclassifiableFileError(ShargeError):
    """File type cannot be determined from the path"""


class UploadTooLargeError(ShargeError):
    """Upload exceeds the configured size ceiling"""


class AuthRequiredError(ShargeError):
    """Request carries no valid session"""
