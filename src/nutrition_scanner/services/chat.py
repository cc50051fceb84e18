"""Nutrition assistant chat."""

import logging
from dataclasses import dataclass

from nutrition_scanner.errors import ChatFailure, InputError, RateLimitFailure
from nutrition_scanner.services.analysis import LanguageModelClient, is_rate_limited

_logger = logging.getLogger(__name__)

SERVICE_UNAVAILABLE = 503
CHAT_BUSY_MESSAGE = (
    "Layanan sedang sibuk karena terlalu banyak permintaan. "
    "Silakan coba beberapa saat lagi."
)

CHAT_PROMPT = """Ini adalah informasi untuk bahan pengetahuan Anda:
(Pemerintah meluncurkan program Makan Bergizi Gratis (MBG) dengan tujuan \
meningkatkan gizi masyarakat dan mengurangi angka kemiskinan. Program MBG \
menargetkan 82,9 juta penerima manfaat dengan alokasi anggaran sebesar Rp171 \
triliun. Fokus utama program ini adalah peningkatan gizi anak-anak dan ibu hamil. \
MBG ditetapkan sebagai salah satu program prioritas nasional untuk periode \
2025-2029.)

Anda adalah ahli gizi profesional sekaligus asisten resmi layanan Transparansi \
Gizi dan Program Makan Bergizi Gratis milik pemerintah. Jawablah pertanyaan \
pengguna dengan ramah, akurat, dan dalam bahasa Indonesia yang mudah dipahami.

Batasan:
- Hanya bahas gizi, makanan bergizi, transparansi data gizi, dan program makan \
bergizi gratis.
- Jangan menjawab pertanyaan di luar konteks tersebut.
- Jika pengguna meminta data spesifik, jelaskan cara mengakses data transparansi \
gizi melalui kanal resmi pemerintah.
- Jangan membuat data atau informasi yang tidak pasti.
- Jawab ringkas namun detail.

Pesan pengguna:
"{message}"
"""


@dataclass
class ChatService:
    """Answers questions within the nutrition programme's domain."""

    client: LanguageModelClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def reply(self, message: object) -> str:
        """Return the assistant's reply to a user message."""
        if not isinstance(message, str) or not message.strip():
            raise InputError("Message is required")
        _logger.info("Chat message received (%s chars)", len(message))
        try:
            return await self.client.generate(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                prompt=CHAT_PROMPT.format(message=message.strip()),
            )
        except Exception as exc:
            _logger.exception("Chat reply failed")
            if is_rate_limited(exc) or _status_code(exc) == SERVICE_UNAVAILABLE:
                raise RateLimitFailure(CHAT_BUSY_MESSAGE) from exc
            raise ChatFailure from exc


def _status_code(exc: Exception) -> int | None:
    status_code = getattr(exc, "status_code", None)
    return status_code if isinstance(status_code, int) else None
