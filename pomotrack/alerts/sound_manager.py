"""
Sound Manager — completion chimes for the timer.

Uses pygame.mixer for lightweight audio. All sounds are generated
programmatically (no audio files shipped).
"""

from __future__ import annotations

import logging
import math
import struct
import wave
from io import BytesIO
from typing import Callable, Dict, List

import pygame.mixer

logger = logging.getLogger(__name__)

SAMPLE_RATE = 22050


class SoundManager:
    """
    Plays named chimes with volume control and an on/off toggle.

    The mixer is not opened until unlock() is called from a user gesture,
    so a silent launch never grabs the audio device.
    """

    def __init__(self, enabled: bool = True, volume: float = 0.5) -> None:
        self.enabled = enabled
        self.volume = max(0.0, min(volume, 1.0))
        self._initialized = False
        self._unlock_attempted = False
        self._sounds: dict = {}

    @property
    def is_ready(self) -> bool:
        return self._initialized

    def unlock(self) -> None:
        """Open the mixer on the first user gesture. Later calls are no-ops."""
        if self._unlock_attempted or not self.enabled:
            return
        self._unlock_attempted = True
        try:
            pygame.mixer.init(frequency=SAMPLE_RATE, size=-16, channels=1, buffer=512)
        except pygame.error as e:
            logger.warning("Could not init audio: %s", e)
            return
        self._initialized = True
        self._load_sounds()
        logger.info("Sound manager initialized.")

    def play(self, sound_name: str) -> None:
        """Play a named chime; silently skipped when audio isn't available."""
        if not self.enabled or not self._initialized:
            return
        sound = self._sounds.get(sound_name)
        if sound:
            sound.set_volume(self.volume)
            sound.play()

    def set_volume(self, volume: float) -> None:
        self.volume = max(0.0, min(volume, 1.0))
        for s in self._sounds.values():
            s.set_volume(self.volume)

    def set_enabled(self, enabled: bool) -> None:
        self.enabled = enabled

    def _load_sounds(self) -> None:
        for name, gen_func in SOUND_SPECS.items():
            try:
                self._sounds[name] = pygame.mixer.Sound(file=BytesIO(gen_func()))
                self._sounds[name].set_volume(self.volume)
            except pygame.error as e:
                logger.warning("Could not load sound %s: %s", name, e)

    # ── Sound generators (simple waveforms) ─────────────────────────────────

    @staticmethod
    def make_wav(samples: List[float], sample_rate: int = SAMPLE_RATE) -> bytes:
        """Pack raw samples into a mono 16-bit WAV byte string."""
        buf = BytesIO()
        with wave.open(buf, "wb") as w:
            w.setnchannels(1)
            w.setsampwidth(2)
            w.setframerate(sample_rate)
            data = b"".join(struct.pack("<h", int(s)) for s in samples)
            w.writeframes(data)
        return buf.getvalue()

    @classmethod
    def gen_timer_done(cls) -> bytes:
        """Ascending completion jingle (work phase finished)."""
        samples: List[float] = []
        for freq in (523, 659, 784, 1047):  # C5, E5, G5, C6
            dur = int(SAMPLE_RATE * 0.12)
            for t in range(dur):
                amp = 7000 * (1 - t / dur)
                samples.append(amp * math.sin(2 * math.pi * freq * t / SAMPLE_RATE))
        return cls.make_wav(samples)

    @classmethod
    def gen_break_over(cls) -> bytes:
        """Two short beeps (break finished, back to work)."""
        samples: List[float] = []
        for _ in range(2):
            dur = int(SAMPLE_RATE * 0.1)
            for t in range(dur):
                amp = 6000 * (1 if t < dur * 0.8 else (1 - (t - dur * 0.8) / (dur * 0.2)))
                samples.append(amp * math.sin(2 * math.pi * 880 * t / SAMPLE_RATE))
            samples.extend([0] * int(SAMPLE_RATE * 0.1))
        return cls.make_wav(samples)


SOUND_SPECS: Dict[str, Callable[[], bytes]] = {
    "timer_complete": SoundManager.gen_timer_done,
    "break_over": SoundManager.gen_break_over,
}


# ---------------------------------------------------------------------------
# Explanation (for interviews)
# ---------------------------------------------------------------------------
# What this file does:
#   Synthesizes and plays the two chimes the timer uses: one when a work
#   phase ends, one when a break ends.
#
# Key design decisions:
#   - Deferred mixer init: the first Start click "unlocks" audio. Until
#     then play() is a no-op, which also keeps unit tests silent.
#   - In-memory WAVs: pygame.mixer.Sound accepts a file-like object, so
#     nothing is written to disk.
#   - Sound is best-effort: a machine with no audio device logs a warning
#     and the timer carries on.
