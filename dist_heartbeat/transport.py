# dist_heartbeat/transport.py
"""
Transporte orientado a conexão sobre TCP.

Cada pacote é uma linha terminada em '\\n'. Threads de leitura convertem o
que chega da rede em eventos (Connected, Disconnected, PacketReceived) numa
fila limitada; o loop do nó esvazia a fila uma vez por tick.
"""
import queue
import socket
import threading
import time
from typing import Dict, List, Optional

from logs.logger import logger
from .config import MAX_EVENTS, RECONNECT_DELAY
from .events import Connected, Disconnected, PacketReceived


class SendError(Exception):
    """Falha ao enviar um pacote para um peer (desconhecido ou socket com erro)."""


class TcpTransport:

    def __init__(self, max_events: int = MAX_EVENTS, reconnect_delay: float = RECONNECT_DELAY):
        self.events: "queue.Queue" = queue.Queue(maxsize=max_events)
        self.reconnect_delay = reconnect_delay
        self.lock = threading.Lock()
        self._peers: Dict[int, socket.socket] = {}
        self._next_peer_id = 1
        self._threads: List[threading.Thread] = []
        self._running = True
        self.server_socket: Optional[socket.socket] = None

    # --- ENTRADA DE CONEXÕES ---

    def listen(self, address):
        """Abre o socket de escuta e retorna o endereço efetivo (host, porta)."""
        server_socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server_socket.bind(address)
            server_socket.listen()
        except OSError:
            server_socket.close()
            raise
        server_socket.settimeout(1.0)
        self.server_socket = server_socket
        bound = server_socket.getsockname()[:2]
        logger.success(f"[TRANSPORT] Escutando em {bound[0]}:{bound[1]}")
        self._spawn("Listener", self._accept_loop)
        return bound

    def _accept_loop(self):
        while self._running:
            try:
                conn, addr = self.server_socket.accept()
            except socket.timeout:
                continue # Volta ao início para checar self._running
            except OSError as e:
                if self._running:
                    logger.error(f"[TRANSPORT] Erro no accept(): {e}")
                break
            conn.settimeout(None)
            peer_id = self._register(conn)
            logger.info(f"[TRANSPORT] Conexão de {addr[0]}:{addr[1]} registrada como peer {peer_id}")

    def connect(self, address):
        """Conecta em segundo plano; reconecta enquanto o transporte estiver ativo."""
        self._spawn("Connector", self._connect_loop, address)

    def _connect_loop(self, address):
        # Mesmo peer_id em todas as reconexões para este endereço
        peer_id = None
        while self._running:
            try:
                conn = socket.create_connection(address, timeout=5)
            except OSError as e:
                logger.warning(f"[TRANSPORT] Falha ao conectar em {address[0]}:{address[1]}: {e}. "
                               f"Nova tentativa em {self.reconnect_delay}s.")
                self._sleep(self.reconnect_delay)
                continue

            conn.settimeout(None)
            peer_id = self._register(conn, start_reader=False, peer_id=peer_id)
            logger.info(f"[TRANSPORT] Conectado a {address[0]}:{address[1]} (peer {peer_id})")
            # O próprio conector vira o leitor; ao cair, tenta de novo
            self._read_loop(peer_id, conn)
            if self._running:
                self._sleep(self.reconnect_delay)

    # --- LEITURA ---

    def _register(self, conn: socket.socket, start_reader: bool = True, peer_id=None) -> int:
        with self.lock:
            if peer_id is None:
                peer_id = self._next_peer_id
                self._next_peer_id += 1
            self._peers[peer_id] = conn
        self._push(Connected(peer_id))
        if start_reader:
            self._spawn(f"Reader-{peer_id}", self._read_loop, peer_id, conn)
        return peer_id

    def _read_loop(self, peer_id: int, conn: socket.socket):
        try:
            with conn:
                reader = conn.makefile('rb')
                while self._running:
                    line = reader.readline()
                    if not line:
                        logger.info(f"[TRANSPORT] Conexão encerrada pelo peer {peer_id}.")
                        break
                    self._push(PacketReceived(peer_id, line.rstrip(b'\r\n')))
        except OSError as e:
            if self._running:
                logger.warning(f"[TRANSPORT] Erro de leitura no peer {peer_id}: {e}")
        finally:
            with self.lock:
                known = self._peers.pop(peer_id, None) is not None
            if known:
                self._push(Disconnected(peer_id))

    def _push(self, event):
        # Fila cheia: segura a thread de leitura até o nó drenar
        while self._running:
            try:
                self.events.put(event, timeout=0.5)
                return
            except queue.Full:
                continue

    def drain_events(self) -> List:
        """Retorna todos os eventos pendentes, na ordem de chegada."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained

    # --- ENVIO ---

    def peers(self) -> List[int]:
        with self.lock:
            return list(self._peers)

    def send(self, peer_id, packet: bytes):
        """Envia um pacote para um peer. Levanta SendError em caso de falha."""
        if b'\n' in packet:
            raise ValueError("Pacotes não podem conter '\\n'.")
        with self.lock:
            conn = self._peers.get(peer_id)
        if conn is None:
            raise SendError(f"peer {peer_id} desconhecido ou desconectado")
        try:
            conn.sendall(packet + b'\n')
        except OSError as e:
            raise SendError(f"falha ao enviar para o peer {peer_id}: {e}") from e

    def broadcast(self, packet: bytes) -> int:
        """Envia para todos os peers. Falhas são registradas e ignoradas."""
        reached = 0
        for peer_id in self.peers():
            try:
                self.send(peer_id, packet)
                reached += 1
            except SendError as e:
                logger.warning(f"[TRANSPORT] Broadcast: {e}")
        return reached

    def disconnect(self, peer_id) -> bool:
        """Derruba a conexão de um peer. Retorna False se ele não existe."""
        with self.lock:
            conn = self._peers.pop(peer_id, None)
        if conn is None:
            return False
        try:
            conn.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass # já fechado pelo outro lado
        conn.close()
        self._push(Disconnected(peer_id))
        logger.info(f"[TRANSPORT] Conexão com o peer {peer_id} encerrada localmente.")
        return True

    # --- CONTROLE ---

    def _spawn(self, name, target, *args):
        self._threads = [t for t in self._threads if t.is_alive()]
        thread = threading.Thread(target=target, args=args, name=name, daemon=True)
        thread.start()
        self._threads.append(thread)

    def _sleep(self, seconds: float):
        # Dorme em passos curtos para responder rápido ao close()
        deadline = time.monotonic() + seconds
        while self._running and time.monotonic() < deadline:
            time.sleep(min(0.1, seconds))

    def close(self):
        if not self._running:
            return
        self._running = False

        if self.server_socket is not None:
            try:
                self.server_socket.close()
            except OSError as e:
                logger.error(f"[TRANSPORT] Erro ao fechar socket do listener: {e}")

        with self.lock:
            conns = list(self._peers.values())
            self._peers.clear()
        for conn in conns:
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass # já fechado pelo outro lado
            conn.close()

        for thread in self._threads:
            thread.join(timeout=2.0)
            if thread.is_alive():
                logger.warning(f"[TRANSPORT] Thread '{thread.name}' não finalizou a tempo.")
        logger.info("[TRANSPORT] Transporte encerrado.")
