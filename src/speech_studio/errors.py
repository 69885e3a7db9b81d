"""Exception hierarchy for speech sessions."""


class SpeechStudioError(Exception):
    """Base class for recoverable speech session failures."""


class EmptyInputError(SpeechStudioError, ValueError):
    """Raised when a playback request carries no text after trimming."""


class UnsupportedError(SpeechStudioError):
    """Raised when the platform lacks the requested speech capability."""


class RecognitionStartError(SpeechStudioError, RuntimeError):
    """Raised synchronously when the recognition platform refuses to start."""


class RecognitionAlreadyStartedError(RecognitionStartError):
    """Raised when a recognition platform is asked to start twice."""
