# payload_models.py
"""
Centraliza os payloads (contratos) do protocolo de heartbeat.

O protocolo só conhece duas tags de texto UTF-8:
    "PING"          -> pedido de confirmação de vida, sem conteúdo
    "PONG @ <now>"  -> eco do PING; <now> é só informativo
Qualquer outro texto é ignorado pelo receptor.
"""

PING = "PING"
PONG_PREFIX = "PONG"


def ping() -> bytes:
    """Payload que o iniciador envia periodicamente."""
    return PING.encode('utf-8')


def pong(now: float) -> bytes:
    """Payload de resposta a um PING, com o instante local de quem responde."""
    return f"{PONG_PREFIX} @ {now}".encode('utf-8')


def decode(data: bytes) -> str:
    # Bytes inválidos viram U+FFFD, nunca uma exceção
    return data.decode('utf-8', errors='replace')


def is_ping(text: str) -> bool:
    return text == PING


def is_pong(text: str) -> bool:
    return text.startswith(PONG_PREFIX)
