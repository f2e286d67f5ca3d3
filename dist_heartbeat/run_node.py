# dist_heartbeat/run_node.py
"""
Inicia um nó de heartbeat.

Uso:
    python -m dist_heartbeat.run_node server [config.json]
    python -m dist_heartbeat.run_node client [config.json]
"""
import sys

from logs.logger import logger, setup_file_logging
from .config import load_config
from .node import Node

ROLES = {"server": False, "client": True}


def parse_args(argv):
    """Retorna (is_initiator, config_path). Levanta ValueError se inválido."""
    if not argv or argv[0] not in ROLES:
        raise ValueError("Você deve especificar o papel do nó: 'server' ou 'client'.")
    config_path = argv[1] if len(argv) > 1 else None
    return ROLES[argv[0]], config_path


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv

    try:
        is_initiator, config_path = parse_args(argv)
    except ValueError as e:
        logger.critical(f"ERRO: {e}")
        logger.critical("Exemplo: python -m dist_heartbeat.run_node client config.json")
        return 1

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        logger.critical(f"Configuração inválida: {e}")
        return 1

    node = Node(is_initiator, config)
    setup_file_logging(f"{node.role}_{config.port}")

    try:
        node.start()
    except OSError as e:
        logger.critical(f"Falha ao iniciar o nó: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
