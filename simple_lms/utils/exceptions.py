class LMSException(Exception):
    """Base exception for the learning service"""
    pass


class DatabaseException(LMSException):
    """Database related failure"""
    pass


class StoreUnavailableException(DatabaseException):
    """Exception when the backing store cannot be read or written (503)"""

    def __init__(self, message: str = "Storage unavailable"):
        self.message = message
        super().__init__(self.message)


class BadRequestException(LMSException):
    """Exception for Bad Request (400)"""

    def __init__(self, message: str = "Bad Request"):
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundException(LMSException):
    """Exception for Not Found (404)"""

    def __init__(self, message: str = "Resource Not Found"):
        self.message = message
        super().__init__(self.message)


class AccessDeniedException(LMSException):
    """Exception for Forbidden (403)"""

    def __init__(self, message: str = "Access Denied"):
        self.message = message
        super().__init__(self.message)


class UnauthorizedException(LMSException):
    """Exception for Unauthorized (401)"""

    def __init__(self, message: str = "Unauthorized"):
        self.message = message
        super().__init__(self.message)


class RateLimitExceededException(LMSException):
    """Exception for Too Many Requests (429)"""

    def __init__(self, message: str = "Too many attempts. Try again in a moment."):
        self.message = message
        super().__init__(self.message)
