"""Interfaces of the remote services a generation job relies on.

Script writing, stock footage search and speech synthesis are provided by
the host application. Anything with matching methods can be passed in.
"""

from dataclasses import dataclass
from typing import Protocol


class ScriptWriter(Protocol):
    def generate_script(
        self, subject: str, paragraph_number: int, ai_model: str, voice: str
    ) -> str:
        ...

    def search_terms(
        self, subject: str, amount: int, script: str, ai_model: str
    ) -> list[str]:
        ...


class ClipSearch(Protocol):
    def search(self, term: str, limit: int, min_duration: int) -> list[str]:
        """Candidate clip URLs for *term*, best match first."""
        ...


class VoiceSynthesizer(Protocol):
    def synthesize(self, text: str, voice: str) -> bytes:
        """Encoded audio (MP3) for a short piece of text."""
        ...


@dataclass
class Services:
    writer: ScriptWriter
    search: ClipSearch
    voice: VoiceSynthesizer
