# dist_heartbeat/events.py
"""
Tipos trocados entre o transporte, o monitor e o nó.

Eventos de entrada (vindos do transporte): Connected, Disconnected,
PacketReceived. Ações de saída (produzidas pelo monitor): Send, Broadcast,
Observation. O monitor só descreve as ações; quem as executa é o Node.
"""
from typing import Hashable, NamedTuple, Optional


class Connected(NamedTuple):
    peer_id: Hashable


class Disconnected(NamedTuple):
    peer_id: Hashable


class PacketReceived(NamedTuple):
    peer_id: Hashable
    data: bytes


class Send(NamedTuple):
    """Enviar 'payload' para um peer específico."""
    peer_id: Hashable
    payload: bytes


class Broadcast(NamedTuple):
    """Enviar 'payload' para todos os peers conectados."""
    payload: bytes


# Tipos de observação
PEER_CONNECTED = "PEER_CONNECTED"
PEER_DISCONNECTED = "PEER_DISCONNECTED"
PROBABLE_DESYNC = "PROBABLE_DESYNC"


class Observation(NamedTuple):
    """Notificação para log; nunca é um erro."""
    kind: str
    peer_id: Hashable
    detail: Optional[str] = None
