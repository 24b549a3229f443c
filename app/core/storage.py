"""
Portal do Cliente - File Storage
Caminhos sob UPLOADS_DIR e as URLs públicas correspondentes (/uploads/...)
"""
import time
import uuid
import logging
from pathlib import Path
from typing import Optional, Tuple

from .config import settings

logger = logging.getLogger(__name__)


def uploads_root() -> Path:
    return Path(settings.UPLOADS_DIR)


def unique_filename(prefix: str, extension: str = ".pdf") -> str:
    """REC1714590000000a1b2c3.pdf - timestamp em ms + sufixo aleatório"""
    return f"{prefix}{int(time.time() * 1000)}{uuid.uuid4().hex[:6]}{extension}"


def upload_target(folder: str, filename: str) -> Tuple[Path, str]:
    """Retorna (caminho no disco, URL pública) para um arquivo em uploads/<folder>/"""
    path = uploads_root() / folder / filename
    url = f"{settings.UPLOADS_URL_PREFIX.rstrip('/')}/{folder}/{filename}"
    return path, url


def path_from_url(url: Optional[str]) -> Optional[Path]:
    """
    Converte /uploads/receipts/x.pdf de volta para o arquivo em disco.
    URLs que não apontam para dentro de UPLOADS_DIR retornam None.
    """
    if not url:
        return None
    prefix = settings.UPLOADS_URL_PREFIX.rstrip('/') + '/'
    if not url.startswith(prefix):
        return None

    root = uploads_root().resolve()
    path = (root / url[len(prefix):]).resolve()
    if path == root or not path.is_relative_to(root):
        logger.warning(f"URL fora do diretório de uploads ignorada: {url}")
        return None
    return path


def remove_file(path: Optional[Path]) -> None:
    """Remove arquivo gerado; falhas só são logadas"""
    if path is None:
        return
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Não foi possível remover {path}: {e}")
