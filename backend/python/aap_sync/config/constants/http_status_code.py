from enum import Enum


class HttpStatusCode(Enum):
    """HTTP status codes returned or interpreted by the service"""

    OK = 200

    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    SSL_CERTIFICATE_ERROR = 495

    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
