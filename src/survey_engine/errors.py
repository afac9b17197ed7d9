"""Domain exceptions raised by the survey SDK.

The server installs one global handler per class (see
``survey_server.errors``), so route handlers only deal with the happy path.

  - SurveyValidationError: bad caller input; raised before any side effect
  - SurveyNotFoundError:   session / preset / question / admin token missing
  - SurveyConflictError:   a version insert kept losing its race
  - GenerationError:       the model failed or its output was unusable;
                           always safe to retry
  - ModelCallError:        transport-level failure talking to the model
"""


class SurveyValidationError(ValueError):
    """Caller input failed validation (non-multiple-of-5 target, bad range...)."""


class SurveyNotFoundError(LookupError):
    """A referenced record does not exist."""


class SurveyConflictError(RuntimeError):
    """Concurrent writers exhausted the version retry budget."""


class GenerationError(RuntimeError):
    """Model output could not be turned into the requested records.

    ``raw`` keeps the offending model text (if any) for server-side logging;
    it is never sent to API clients.
    """

    def __init__(self, message: str, *, raw: str | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class ModelCallError(GenerationError):
    """The model endpoint could not be reached or answered with non-2xx."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
