class ParseError(Exception):
    """Base error for messages that cannot be parsed at all."""


class MissingPatientSegment(ParseError):
    def __init__(self, message: str = "No PID segment found"):
        super().__init__(message)
