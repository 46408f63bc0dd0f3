"""Domain errors; api_endpoints maps each one to its status code."""


class TourismError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(TourismError):
    status_code = 400


class NotFound(TourismError):
    status_code = 404

    def __init__(self, resource: str, resource_id=None):
        if resource_id is None:
            detail = f"{resource} not found"
        else:
            detail = f"{resource} not found: {resource_id}"
        super().__init__(detail)
        self.resource = resource
        self.resource_id = resource_id


class DuplicateBookingNumber(TourismError):
    status_code = 409

    def __init__(self, booking_number: str):
        # The cause is internal, so callers only get a retry hint
        super().__init__("Could not reserve a booking reference, please retry")
        self.booking_number = booking_number


class Unauthorized(TourismError):
    status_code = 401

    def __init__(self, detail: str = "Authentication required"):
        super().__init__(detail)


class Forbidden(TourismError):
    status_code = 403

    def __init__(self, detail: str = "Access denied"):
        super().__init__(detail)


class AlreadyExists(ValidationError):
    """Registration with a taken email or username; reported as a plain 400."""


class UploadRejected(TourismError):
    status_code = 400


class UploadTooLarge(UploadRejected):
    status_code = 413
