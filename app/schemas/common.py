"""
Portal do Cliente - Tipos comuns dos schemas
"""
from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def _to_naive_utc(value: datetime) -> datetime:
    """Datas com fuso são convertidas para UTC sem tzinfo (padrão das colunas)"""
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


UTCDatetime = Annotated[datetime, AfterValidator(_to_naive_utc)]
