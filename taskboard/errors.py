"""Error taxonomy shared by the server and the client library.

- ValidationError: bad or missing input, rejected before any mutation.
- NotFoundError: a referenced board, column or task does not exist.
- NetworkError: the client could not reach the server at all.

Each error carries the HTTP status it maps to so the Flask error handler and
the client transport agree on a single table.
"""


class TaskboardError(Exception):
    status_code = 500

    def __init__(self, message="", status_code=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(TaskboardError, ValueError):
    status_code = 400


class NotFoundError(TaskboardError, LookupError):
    status_code = 404


class NetworkError(TaskboardError):
    status_code = 503
