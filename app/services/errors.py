class ServiceError(Exception):
    """Base class for failures the controllers translate into HTTP responses."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ShareValidationError(ServiceError):
    status_code = 400


class ItineraryNotFound(ServiceError):
    status_code = 404

    def __init__(self, message: str = "Itinerary not found"):
        super().__init__(message)


class IncorrectPassword(ServiceError):
    status_code = 401

    def __init__(self, message: str = "Incorrect password"):
        super().__init__(message)


class MailDeliveryError(ServiceError):
    status_code = 502


class InsufficientLocations(ServiceError):
    status_code = 400

    def __init__(self, message: str = "Need at least 2 locations with addresses to calculate travel times"):
        super().__init__(message)
