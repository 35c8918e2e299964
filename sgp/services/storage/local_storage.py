"""
SGP - Storage em disco local (desenvolvimento e testes)
Os arquivos ficam em UPLOAD_FOLDER e são servidos em PUBLIC_UPLOAD_URL.
"""
import logging
import os
from typing import Iterable

from ..excecoes import ErroArmazenamento
from .base_storage import BaseStorage

logger = logging.getLogger(__name__)


class LocalStorage(BaseStorage):

    BACKEND = 'local'

    def __init__(self, pasta: str, url_base: str = '/uploads'):
        self.pasta = os.path.abspath(pasta)
        self.url_base = url_base.rstrip('/')
        os.makedirs(self.pasta, exist_ok=True)

    @classmethod
    def from_config(cls, config) -> 'LocalStorage':
        return cls(
            pasta=config.get('UPLOAD_FOLDER', os.path.join(os.getcwd(), 'uploads')),
            url_base=config.get('PUBLIC_UPLOAD_URL', '/uploads'),
        )

    def caminho_absoluto(self, caminho: str) -> str:
        destino = os.path.abspath(os.path.join(self.pasta, caminho))
        if not destino.startswith(self.pasta + os.sep):
            raise ErroArmazenamento(f'Caminho fora da pasta de uploads: {caminho}')
        return destino

    def existe(self, caminho: str) -> bool:
        return os.path.isfile(self.caminho_absoluto(caminho))

    def enviar(self, caminho: str, conteudo: bytes, content_type: str) -> None:
        destino = self.caminho_absoluto(caminho)
        try:
            os.makedirs(os.path.dirname(destino), exist_ok=True)
            with open(destino, 'wb') as f:
                f.write(conteudo)
        except OSError as e:
            logger.error(f"Erro ao gravar arquivo local {destino}: {e}")
            raise ErroArmazenamento(f'Erro ao enviar arquivo: {e}') from e
        logger.info(f"Arquivo gravado: {caminho} ({len(conteudo)} bytes)")

    def remover(self, caminhos: Iterable[str]) -> None:
        for caminho in caminhos:
            if not caminho:
                continue
            destino = self.caminho_absoluto(caminho)
            try:
                os.remove(destino)
            except FileNotFoundError:
                logger.debug(f"Arquivo já inexistente: {caminho}")
            except OSError as e:
                logger.error(f"Erro ao remover arquivo local {destino}: {e}")
                raise ErroArmazenamento(f'Erro ao remover arquivo: {e}') from e

    def url_publica(self, caminho: str) -> str:
        return f"{self.url_base}/{caminho}"
