class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler encounters a logical error or invalid state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )

class MissingResourceError(AppError):
    """Raised when a required input set for generation is empty."""
    resource = "resource"

    def __init__(self, academic_year: str, semester: int):
        super().__init__(
            f"No {self.resource} available for timetable generation",
            status_code=422,
            details={"resource": self.resource, "academic_year": academic_year, "semester": semester},
        )

class NoCoursesError(MissingResourceError):
    resource = "courses"

class NoRoomsError(MissingResourceError):
    resource = "rooms"

class NoLecturersError(MissingResourceError):
    resource = "lecturers"

class NoTimeSlotsError(MissingResourceError):
    resource = "time slots"

class GenerationError(AppError):
    """Raised when generation fails after every strategy was exhausted."""
    def __init__(self, message: str, cause: Exception | None = None, details: dict = None):
        full_message = f"{message}: {cause}" if cause is not None else message
        super().__init__(full_message, status_code=500, details=details)
        self.cause = cause

class GenerationInProgressError(AppError):
    """Raised when the same term is already being generated."""
    def __init__(self, academic_year: str, semester: int):
        super().__init__(
            f"Timetable generation already running for {academic_year} semester {semester}",
            status_code=409,
            details={"academic_year": academic_year, "semester": semester},
        )
