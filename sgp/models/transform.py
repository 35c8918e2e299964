"""
SGP - Conversão entre linhas do banco (snake_case) e a API (camelCase)
Um único mapa parametrizado por tabela de campos, usado por todas as entidades.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional


def snake_para_camel(nome: str) -> str:
    """'asset_number' -> 'assetNumber'"""
    primeira, *resto = nome.split('_')
    return primeira + ''.join(p[:1].upper() + p[1:] for p in resto)


def serializar_valor(valor: Any) -> Any:
    """Converte tipos do banco para JSON. Nunca lança exceção."""
    if valor is None:
        return None
    if isinstance(valor, (datetime, date)):
        return valor.isoformat()
    if isinstance(valor, Decimal):
        return float(valor)
    return valor


class MapaCampos:
    """
    Mapa bidirecional coluna <-> chave da API.

    As chaves camelCase são derivadas automaticamente das colunas;
    `renomear` permite exceções ({'coluna': 'chaveApi'}).
    """

    def __init__(self, colunas: Iterable[str], renomear: Optional[Mapping[str, str]] = None):
        renomear = renomear or {}
        self.coluna_para_api = {c: renomear.get(c, snake_para_camel(c)) for c in colunas}
        self.api_para_coluna = {v: k for k, v in self.coluna_para_api.items()}

    def para_api(self, origem: Any, **extras) -> dict:
        """
        Converte um objeto do modelo (ou dict de linha) para o formato da API.
        Colunas ausentes viram None; `extras` são campos calculados.
        """
        if isinstance(origem, Mapping):
            ler = origem.get
        else:
            def ler(coluna):
                return getattr(origem, coluna, None)

        data = {
            chave: serializar_valor(ler(coluna))
            for coluna, chave in self.coluna_para_api.items()
        }
        for chave, valor in extras.items():
            data[chave] = serializar_valor(valor)
        return data

    def para_banco(self, payload: Optional[Mapping[str, Any]]) -> dict:
        """Mantém apenas as chaves conhecidas presentes no payload, já como colunas."""
        if not payload:
            return {}
        return {
            self.api_para_coluna[chave]: valor
            for chave, valor in payload.items()
            if chave in self.api_para_coluna
        }
