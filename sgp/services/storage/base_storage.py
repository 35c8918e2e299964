"""
SGP - Base Storage
Interface comum dos backends de armazenamento de arquivos.
"""
from abc import ABC, abstractmethod
from typing import Iterable


class BaseStorage(ABC):

    BACKEND = 'base'

    @classmethod
    @abstractmethod
    def from_config(cls, config) -> 'BaseStorage':
        """Cria o backend a partir da configuração do app."""

    @abstractmethod
    def enviar(self, caminho: str, conteudo: bytes, content_type: str) -> None:
        """Grava o arquivo em `caminho`. Lança ErroArmazenamento em caso de falha."""

    @abstractmethod
    def remover(self, caminhos: Iterable[str]) -> None:
        """Remove os arquivos. Caminhos inexistentes são ignorados."""

    @abstractmethod
    def url_publica(self, caminho: str) -> str:
        """URL pública de leitura do arquivo."""
