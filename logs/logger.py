"""
logs/logger.py
Configuração do logger (loguru) compartilhado pelos nós de heartbeat.
"""
import sys
from loguru import logger

CONSOLE_FORMAT = "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{name}:{function}</cyan> - <level>{message}</level>"
FILE_FORMAT = "{time:DD/MM/YYYY HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

# Sem o handler padrão; o console é adicionado abaixo
logger.remove()

logger.add(
    sys.stdout,
    colorize=True,
    format=CONSOLE_FORMAT,
    level="INFO",
    enqueue=True
)


def setup_file_logging(process_id: str, log_dir: str = "logs"):
    """
    Adiciona os sinks de arquivo (atividade e erro) para um nó.
    Retorna a base do caminho usada pelos arquivos.
    """
    safe_id = "".join(c for c in process_id if c.isalnum() or c in ('_', '-')).strip()
    if not safe_id:
        safe_id = "unknown_node"

    log_path_base = f"{log_dir}/{safe_id}"

    logger.add(
        f"{log_path_base}_activity.log",
        rotation="10 MB",
        retention="7 days",
        format=FILE_FORMAT,
        level="INFO",
        encoding="utf-8",
        enqueue=True
    )

    # WARNING ou acima: desync, falhas de envio, erros fatais
    logger.add(
        f"{log_path_base}_error.log",
        rotation="5 MB",
        retention="30 days",
        format=FILE_FORMAT,
        level="WARNING",
        encoding="utf-8",
        enqueue=True
    )

    logger.success(f"Logs de arquivo configurados. Saída em: {log_path_base}_*.log")
    return log_path_base
