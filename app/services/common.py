"""
Dados compartilhados pelos geradores de documentos
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from app.utils.formatting import format_currency


@dataclass
class ClientInfo:
    """Destinatário impresso nos documentos"""
    name: str
    document: str = ""
    email: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None

    @classmethod
    def from_client(cls, client) -> "ClientInfo":
        return cls(
            name=client.display_name,
            document=client.document,
            email=client.email,
            address=client.address,
            city=client.city,
            state=client.state,
            zip_code=client.zip_code,
        )

    @property
    def full_address(self) -> str:
        return ", ".join(p for p in [self.address, self.city, self.state, self.zip_code] if p)


@dataclass
class LineItem:
    name: str
    quantity: float = 1
    unit: str = "UN"
    unit_price: float = 0.0

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price


def _quantity(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


def item_rows(items: Optional[List[LineItem]], amount: float,
              fallback: str = "Serviços Diversos") -> List[Dict[str, str]]:
    """Linhas da tabela de itens; sem itens, uma linha genérica com o valor total"""
    if not items:
        return [{"description": fallback, "total": format_currency(amount)}]
    return [
        {
            "description": item.name,
            "quantity": _quantity(item.quantity),
            "unit": item.unit,
            "unit_price": format_currency(item.unit_price),
            "total": format_currency(item.total),
        }
        for item in items
    ]
