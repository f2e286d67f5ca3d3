"""
dist_heartbeat/config.py
Valores padrão do nó e carregamento do arquivo de configuração (JSON).
"""
import json
from typing import Optional

from logs.logger import logger

SERVER_IP = '127.0.0.1'
SERVER_PORT = 14191

PING_INTERVAL = 1.0      # segundos entre dois PINGs do iniciador
DESYNC_THRESHOLD = 5.0   # atraso máximo entre PING enviado e PONG recebido
TICK_RATE = 60           # ticks por segundo do loop do nó

RECONNECT_DELAY = 2      # segundos entre tentativas de conexão do cliente
MAX_EVENTS = 1024        # tamanho da fila de eventos do transporte


class NodeConfig:
    """Parâmetros de um nó. Campos ausentes usam os padrões deste módulo."""

    def __init__(self, host=SERVER_IP, port=SERVER_PORT,
                 ping_interval=PING_INTERVAL, desync_threshold=DESYNC_THRESHOLD,
                 tick_rate=TICK_RATE, reconnect_delay=RECONNECT_DELAY,
                 max_events=MAX_EVENTS):
        self.host = host
        try:
            self.port = int(port)
            self.ping_interval = float(ping_interval)
            self.desync_threshold = float(desync_threshold)
            self.tick_rate = float(tick_rate)
            self.reconnect_delay = float(reconnect_delay)
            self.max_events = int(max_events)
        except TypeError as e:
            # Ex.: "port": null no JSON
            raise ValueError(f"Valor de configuração inválido: {e}") from e
        self._validate()

    def _validate(self):
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Porta inválida: {self.port}")
        for name in ("ping_interval", "tick_rate", "reconnect_delay"):
            if getattr(self, name) <= 0:
                raise ValueError(f"'{name}' deve ser positivo, recebido {getattr(self, name)}")
        if self.desync_threshold < 0:
            raise ValueError(f"'desync_threshold' não pode ser negativo, recebido {self.desync_threshold}")
        if self.max_events <= 0:
            raise ValueError(f"'max_events' deve ser positivo, recebido {self.max_events}")

    @property
    def address(self):
        return (self.host, self.port)

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_rate

    def __repr__(self):
        return (f"NodeConfig(host={self.host!r}, port={self.port}, ping_interval={self.ping_interval}, "
                f"desync_threshold={self.desync_threshold}, tick_rate={self.tick_rate})")


def load_config(config_path: Optional[str] = None) -> NodeConfig:
    """
    Carrega a configuração do arquivo JSON. Sem caminho, usa só os padrões.

    Formato:
        {"server": {"ip": "...", "port": 14191},
         "timing": {"ping_interval": 1.0, "desync_threshold": 5.0,
                    "tick_rate": 60, "reconnect_delay": 2,
                    "max_events": 1024}}
    """
    if config_path is None:
        return NodeConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.critical(f"Arquivo de configuração '{config_path}' não encontrado!")
        raise
    except json.JSONDecodeError as e:
        logger.critical(f"Arquivo de configuração '{config_path}' não é um JSON válido: {e}")
        raise

    server = data.get('server', {})
    timing = data.get('timing', {})

    return NodeConfig(
        host=server.get('ip', SERVER_IP),
        port=server.get('port', SERVER_PORT),
        ping_interval=timing.get('ping_interval', PING_INTERVAL),
        desync_threshold=timing.get('desync_threshold', DESYNC_THRESHOLD),
        tick_rate=timing.get('tick_rate', TICK_RATE),
        reconnect_delay=timing.get('reconnect_delay', RECONNECT_DELAY),
        max_events=timing.get('max_events', MAX_EVENTS),
    )
