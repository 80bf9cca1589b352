"""Optional capability adapters: content hashing and speech playback."""

import hashlib
import logging
import shutil
import subprocess
import sys

from lexicard.domain.ports import ContentHasher, SpeechPlayer

logger = logging.getLogger(__name__)


class Sha256ContentHasher(ContentHasher):
    def hexdigest(self, data: bytes) -> str:
        return hashlib.sha256(data).hexdigest()


class CommandSpeechPlayer(SpeechPlayer):
    """
    Speaks text through the platform's command-line synthesizer.

    Uses ``say`` on macOS and ``espeak`` elsewhere.
    """

    def __init__(self, command: str | None = None):
        self.command = command or ("say" if sys.platform == "darwin" else "espeak")

    @classmethod
    def detect(cls) -> "CommandSpeechPlayer | None":
        """Return a player if a synthesizer binary is on PATH, else None."""
        player = cls()
        if shutil.which(player.command) is None:
            logger.info(f"No speech synthesizer found ({player.command}); listening mode is silent")
            return None
        return player

    def speak(self, text: str) -> None:
        subprocess.run([self.command, text], check=True, capture_output=True)
