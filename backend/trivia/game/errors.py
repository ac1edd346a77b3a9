class TriviaError(Exception):
    """Base class for game engine errors."""


class CustomDataError(TriviaError):
    """Uploaded custom game data could not be turned into rounds."""
