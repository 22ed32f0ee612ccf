"""Closed set of failures a game operation can report.

Callers branch on ``kind`` (or the exception class), never on the message.
"""


class GameError(Exception):
    kind = 'game_error'
    status_code = 400
    default_message = 'Game error'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class Unauthenticated(GameError):
    kind = 'unauthenticated'
    status_code = 401
    default_message = 'Must be logged in'


class Unauthorized(GameError):
    kind = 'unauthorized'
    status_code = 403
    default_message = 'Not allowed'


class NotFound(GameError):
    kind = 'not_found'
    status_code = 404
    default_message = 'Not found'


class InvalidState(GameError):
    kind = 'invalid_state'
    status_code = 409
    default_message = 'Operation not allowed in the current state'


class ValidationError(GameError):
    kind = 'validation_error'
    status_code = 400
    default_message = 'Invalid input'


class DuplicateGuess(GameError):
    kind = 'duplicate_guess'
    status_code = 409
    default_message = 'Already submitted a guess for this round'


class DeadlineExpired(GameError):
    kind = 'deadline_expired'
    status_code = 409
    default_message = "Time's up!"


class NameConflict(GameError):
    kind = 'name_conflict'
    status_code = 409
    default_message = 'This team name is already taken'


ERROR_KINDS = tuple(
    cls.kind for cls in (
        Unauthenticated, Unauthorized, NotFound, InvalidState,
        ValidationError, DuplicateGuess, DeadlineExpired, NameConflict,
    )
)
