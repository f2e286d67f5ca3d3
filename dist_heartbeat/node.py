# dist_heartbeat/node.py
import time
from typing import Optional

from logs.logger import logger
from .config import NodeConfig
from .events import (Broadcast, Observation, Send,
                     PEER_CONNECTED, PEER_DISCONNECTED, PROBABLE_DESYNC)
from .monitor import HeartbeatMonitor
from .transport import SendError, TcpTransport


class MonotonicClock:
    """Segundos decorridos desde a criação do relógio."""

    def __init__(self):
        self._start = time.monotonic()

    def now(self) -> float:
        return time.monotonic() - self._start


class Node:
    """
    Um nó do protocolo: o cliente (iniciador) conecta e envia PINGs, o
    servidor escuta e responde. O loop roda a uma taxa fixa de ticks.
    """

    def __init__(self, is_initiator: bool, config: Optional[NodeConfig] = None,
                 transport=None, clock=None):
        self.is_initiator = is_initiator
        self.config = config or NodeConfig()
        self.transport = transport or TcpTransport(max_events=self.config.max_events,
                                                   reconnect_delay=self.config.reconnect_delay)
        self.clock = clock or MonotonicClock()
        self.monitor = HeartbeatMonitor(is_initiator,
                                        ping_interval=self.config.ping_interval,
                                        desync_threshold=self.config.desync_threshold)
        self._running = False

    @property
    def role(self) -> str:
        return "client" if self.is_initiator else "server"

    def start(self):
        """Abre o transporte e roda o loop até stop() ou Ctrl+C."""
        self.open()
        try:
            self.run_forever()
        except KeyboardInterrupt:
            logger.warning("[NODE] Interrompido pelo usuário.")
        finally:
            self.stop()

    def open(self):
        self._running = True
        if self.is_initiator:
            logger.info(f"[NODE] Iniciando cliente -> {self.config.host}:{self.config.port}")
            self.transport.connect(self.config.address)
        else:
            logger.info(f"[NODE] Iniciando servidor em {self.config.host}:{self.config.port}")
            self.transport.listen(self.config.address)

    def run_forever(self):
        interval = self.config.tick_interval
        next_tick = time.monotonic()
        while self._running:
            self.run_once()
            next_tick += interval
            delay = next_tick - time.monotonic()
            if delay > 0:
                time.sleep(delay)
            else:
                # Atrasado: não tenta compensar ticks perdidos
                next_tick = time.monotonic()

    def run_once(self):
        """Um tick: eventos primeiro, depois PING e checagem de desync."""
        now = self.clock.now()
        for event in self.transport.drain_events():
            self._apply(self.monitor.on_transport_event(event, now))
        self._apply(self.monitor.tick(now))

    def _apply(self, actions):
        for action in actions:
            if isinstance(action, Send):
                try:
                    self.transport.send(action.peer_id, action.payload)
                    logger.info(f"[NODE] PONG enviado para [{action.peer_id}]")
                except SendError as e:
                    logger.warning(f"[NODE] Erro ao enviar PONG: {e}")
            elif isinstance(action, Broadcast):
                logger.info("[NODE] PING")
                self.transport.broadcast(action.payload)
            elif isinstance(action, Observation):
                self._log_observation(action)

    def _log_observation(self, observation: Observation):
        if observation.kind == PEER_CONNECTED:
            logger.info(f"[NODE] Conectado: peer {observation.peer_id}")
        elif observation.kind == PEER_DISCONNECTED:
            logger.info(f"[NODE] Desconectado: peer {observation.peer_id}")
        elif observation.kind == PROBABLE_DESYNC:
            logger.warning(f"[NODE] Provavelmente desconectado do peer {observation.peer_id} ({observation.detail})")
        else:
            logger.debug(f"[NODE] Observação {observation.kind} para peer {observation.peer_id}")

    def stop(self):
        if not self._running:
            return
        self._running = False
        self.transport.close()
        logger.info("[NODE] Nó encerrado.")
