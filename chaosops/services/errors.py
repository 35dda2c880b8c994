"""Error taxonomy for the display pairing services.

Services raise these; the API layer maps them onto HTTP responses.
"""


class PairingError(ValueError):
    code = "error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(PairingError):
    code = "validation_error"
    status_code = 400


class NotFoundError(PairingError):
    code = "not_found"
    status_code = 404


class ConflictError(PairingError):
    code = "conflict"
    status_code = 409


class InvalidReferenceError(PairingError):
    code = "invalid_reference"
    status_code = 400


class CodeSpaceExhaustedError(PairingError):
    code = "internal_error"
    status_code = 500
