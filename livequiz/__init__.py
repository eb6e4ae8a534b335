"""LiveQuiz: real-time coordinator for a live multiplayer quiz."""

__version__ = "0.1.0"
