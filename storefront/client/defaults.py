"""オフライン時の最小限のデフォルトデータ.

ネットワークもスナップショットも使えない場合に一覧取得が返す。
"""

import copy
from typing import Any

DEFAULT_DATA: dict[str, list[dict[str, Any]]] = {
    "categories": [
        {"id": "cat1", "name": "Bags e Mochilas", "parentId": None},
        {"id": "cat2", "name": "Equipamentos de Proteção", "parentId": None},
        {"id": "cat3", "name": "Acessórios", "parentId": None},
        {"id": "cat4", "name": "Peças e Componentes", "parentId": None},
    ],
    "products": [
        {
            "id": 1,
            "name": "Mochila para Entregador",
            "description": "Mochila resistente ideal para entregas, com compartimentos térmicos",
            "price": 149.90,
            "stock": 25,
            "categoryId": "cat1",
            "isNew": True,
            "sale": False,
            "salePrice": None,
        },
        {
            "id": 2,
            "name": "Bag Térmica 45 Litros",
            "description": "Bag térmica com capacidade de 45L, ideal para entregas de alimentos",
            "price": 99.90,
            "stock": 15,
            "categoryId": "cat1",
            "isNew": True,
            "sale": True,
            "salePrice": 89.90,
        },
        {
            "id": 3,
            "name": "Capacete para Motociclista",
            "description": "Capacete certificado com viseira de proteção UV",
            "price": 189.90,
            "stock": 10,
            "categoryId": "cat2",
            "isNew": False,
            "sale": False,
            "salePrice": None,
        },
    ],
}


def default_data_for(resource: str) -> list[dict[str, Any]]:
    """リソースのデフォルトデータのコピー. 定義がなければ空リスト."""
    return copy.deepcopy(DEFAULT_DATA.get(resource, []))
