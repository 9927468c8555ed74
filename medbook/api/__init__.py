"""API package initialization."""
from medbook.api.models import AvailabilityResponse, BookingRequest, BookingResponse, ErrorResponse

__all__ = ["AvailabilityResponse", "BookingRequest", "BookingResponse", "ErrorResponse"]
