# dist_heartbeat/monitor.py
from typing import Dict, Hashable, List

from logs.logger import logger
from . import payload_models
from .config import DESYNC_THRESHOLD, PING_INTERVAL
from .events import (Broadcast, Connected, Disconnected, Observation, PacketReceived, Send,
                     PEER_CONNECTED, PEER_DISCONNECTED, PROBABLE_DESYNC)
from .session import Session


class HeartbeatMonitor:
    """
    Decide quando enviar PING, responde PINGs com PONG e aponta sessões
    que pararam de ecoar.

    Não acessa socket nem relógio: o instante 'now' chega em cada chamada e
    o resultado é uma lista de ações (Send, Broadcast, Observation).
    """

    def __init__(self, is_initiator: bool, ping_interval: float = PING_INTERVAL,
                 desync_threshold: float = DESYNC_THRESHOLD):
        self.is_initiator = is_initiator
        self.ping_interval = ping_interval
        self.desync_threshold = desync_threshold
        self.sessions: Dict[Hashable, Session] = {}

    def is_connected(self, peer_id) -> bool:
        session = self.sessions.get(peer_id)
        return session is not None and session.connected

    def on_transport_event(self, event, now: float) -> List:
        """Aplica um evento do transporte ao estado das sessões."""
        if isinstance(event, Connected):
            self.sessions[event.peer_id] = Session(event.peer_id, connected_at=now)
            return [Observation(PEER_CONNECTED, event.peer_id)]

        if isinstance(event, Disconnected):
            session = self.sessions.get(event.peer_id)
            if session is None:
                # Peer desconhecido: registra só a identidade, já desconectada
                self.sessions[event.peer_id] = Session(event.peer_id, connected_at=now, connected=False)
            else:
                session.disconnect()
            return [Observation(PEER_DISCONNECTED, event.peer_id)]

        if isinstance(event, PacketReceived):
            return self._on_packet(event.peer_id, event.data, now)

        logger.warning(f"[MONITOR] Evento desconhecido ignorado: {event!r}")
        return []

    def _on_packet(self, peer_id, data: bytes, now: float) -> List:
        message = payload_models.decode(data)
        logger.debug(f"[MONITOR] Pacote recebido de [{peer_id}]: {message}")

        if payload_models.is_ping(message):
            return [Send(peer_id, payload_models.pong(now))]

        if payload_models.is_pong(message):
            if self.is_initiator:
                session = self.sessions.get(peer_id)
                if session is not None:
                    session.mark_echoed(now)
            return []

        # Tag desconhecida: espaço para mensagens futuras
        return []

    def tick(self, now: float) -> List:
        """Executado uma vez por tick, depois dos eventos do mesmo tick."""
        actions = []

        if self.is_initiator:
            connected = [s for s in self.sessions.values() if s.connected]
            if any(s.ping_due(now, self.ping_interval) for s in connected):
                # Um único broadcast alcança todos os conectados
                actions.append(Broadcast(payload_models.ping()))
                for session in connected:
                    session.mark_sent(now)

        for session in self.sessions.values():
            lag = session.echo_lag()
            if lag is not None and lag > self.desync_threshold:
                actions.append(Observation(
                    PROBABLE_DESYNC, session.peer_id,
                    f"último PING em {session.last_sent:.3f}s, último PONG há {lag:.3f}s antes dele"
                ))

        return actions
