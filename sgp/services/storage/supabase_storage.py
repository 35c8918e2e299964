"""
SGP - Supabase Storage
Cliente da API REST de storage do Supabase (bucket de arquivos dos equipamentos).
Documentação: https://supabase.com/docs/reference/api/storage
"""
import logging
from typing import Iterable
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..excecoes import ErroArmazenamento
from .base_storage import BaseStorage

logger = logging.getLogger(__name__)


class SupabaseStorage(BaseStorage):

    BACKEND = 'supabase'

    def __init__(self, url: str, service_key: str, bucket: str, timeout=30, max_retries=2):
        if not url or not service_key:
            logger.warning("Supabase Storage: SUPABASE_URL / SUPABASE_SERVICE_KEY não configurados")
        self.base_url = url.rstrip('/')
        self.bucket = bucket
        self.timeout = timeout

        # Retry apenas em métodos idempotentes: um upload repetido poderia duplicar o arquivo
        self.session = requests.Session()
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "DELETE"]
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)
        self.session.headers.update({
            'Authorization': f'Bearer {service_key}',
            'apikey': service_key,
            'User-Agent': 'SGP/1.0 (Sistema de Gestão de Patrimônio)'
        })

    @classmethod
    def from_config(cls, config) -> 'SupabaseStorage':
        return cls(
            url=config.get('SUPABASE_URL', ''),
            service_key=config.get('SUPABASE_SERVICE_KEY', ''),
            bucket=config.get('STORAGE_BUCKET', 'equipment-files'),
            timeout=config.get('STORAGE_TIMEOUT', 30),
        )

    def _url_objeto(self, caminho: str = '') -> str:
        url = f"{self.base_url}/storage/v1/object/{self.bucket}"
        if caminho:
            url = f"{url}/{quote(caminho)}"
        return url

    def enviar(self, caminho: str, conteudo: bytes, content_type: str) -> None:
        url = self._url_objeto(caminho)
        try:
            response = self.session.post(
                url,
                data=conteudo,
                headers={'Content-Type': content_type or 'application/octet-stream', 'x-upsert': 'false'},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.error(f"Supabase Storage upload falhou: {e} | Caminho: {caminho} | {response.text[:200]}")
            raise ErroArmazenamento(f'Erro ao enviar arquivo: {e}') from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Supabase Storage indisponível: {e}")
            raise ErroArmazenamento(f'Erro ao enviar arquivo: {e}') from e

        logger.info(f"Arquivo enviado ao storage: {caminho} ({len(conteudo)} bytes)")

    def remover(self, caminhos: Iterable[str]) -> None:
        caminhos = [c for c in caminhos if c]
        if not caminhos:
            return
        try:
            response = self.session.delete(
                self._url_objeto(),
                json={'prefixes': caminhos},
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Supabase Storage remoção falhou: {e} | Caminhos: {caminhos}")
            raise ErroArmazenamento(f'Erro ao remover arquivos: {e}') from e

        logger.info(f"{len(caminhos)} arquivo(s) removido(s) do storage")

    def url_publica(self, caminho: str) -> str:
        return f"{self.base_url}/storage/v1/object/public/{self.bucket}/{quote(caminho)}"
