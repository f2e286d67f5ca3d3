# dist_heartbeat/session.py
from typing import Hashable, Optional


class Session:
    """
    Estado de liveness de um peer remoto.

    last_sent / last_echoed ficam em None até o primeiro PING enviado /
    primeiro PONG recebido. Só avançam no tempo enquanto a conexão dura; o
    Disconnect os apaga e um novo Connect cria uma sessão nova.
    """

    def __init__(self, peer_id: Hashable, connected_at: float, connected: bool = True):
        self.peer_id = peer_id
        self.connected = connected
        self.connected_at = connected_at
        self.last_sent: Optional[float] = None
        self.last_echoed: Optional[float] = None

    def ping_due(self, now: float, interval: float) -> bool:
        if self.last_sent is None:
            return True
        return now - self.last_sent >= interval

    def mark_sent(self, now: float):
        if self.last_sent is None or now > self.last_sent:
            self.last_sent = now

    def mark_echoed(self, now: float):
        if self.last_echoed is None or now > self.last_echoed:
            self.last_echoed = now

    def disconnect(self):
        # Sem conexão, os instantes antigos não dizem nada sobre o peer
        self.connected = False
        self.last_sent = None
        self.last_echoed = None

    def echo_lag(self) -> Optional[float]:
        """
        Quanto o último PING está à frente do último PONG. None se nada foi
        enviado. Sem PONG ainda, a referência é o momento da conexão.
        """
        if self.last_sent is None:
            return None
        baseline = self.last_echoed if self.last_echoed is not None else self.connected_at
        return self.last_sent - baseline

    def __repr__(self):
        return (f"Session(peer_id={self.peer_id!r}, connected={self.connected}, "
                f"last_sent={self.last_sent}, last_echoed={self.last_echoed})")
