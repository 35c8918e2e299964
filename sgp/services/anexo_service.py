"""
SGP - Anexos de equipamentos
Coordena o arquivo no storage com o registro na tabela de anexos.
"""
import logging
import time
from typing import Iterable, Optional

from werkzeug.utils import secure_filename

from ..models.database import db, Anexo, Equipamento
from .contexto import Ator, unidade_de_trabalho
from .excecoes import ErroArmazenamento, ErroValidacao, NaoEncontrado
from .historico_service import HistoricoService, ANEXOU_ARQUIVO, REMOVEU_ARQUIVO
from .storage import BaseStorage

logger = logging.getLogger(__name__)


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


class AnexoService:
    """Anexos de equipamentos: arquivo no storage + registro no banco."""

    def __init__(self, config: dict, storage: BaseStorage, historico: Optional[HistoricoService] = None):
        self.storage = storage
        self.tamanho_maximo = config.get('MAX_ATTACHMENT_SIZE', 10 * 1024 * 1024)
        self.historico = historico or HistoricoService(config)

    # =========================================================
    # CAMINHOS NO STORAGE
    # =========================================================

    @staticmethod
    def caminho_anexo(equipamento_id: str, nome_arquivo: str) -> str:
        nome = secure_filename(nome_arquivo) or 'arquivo'
        return f'attachments/{equipamento_id}_{_timestamp_ms()}_{nome}'

    @staticmethod
    def caminho_termo(equipamento_id: str) -> str:
        return f'terms/termo_{equipamento_id}_{_timestamp_ms()}.pdf'

    # =========================================================
    # CONSULTAS
    # =========================================================

    def para_api(self, anexo: Anexo) -> dict:
        return anexo.to_dict(url=self.storage.url_publica(anexo.file_path))

    def listar(self, equipamento_id: str) -> list:
        if db.session.get(Equipamento, equipamento_id) is None:
            raise NaoEncontrado('Equipamento não encontrado')
        return Anexo.query.filter_by(equipment_id=equipamento_id).order_by(Anexo.uploaded_at).all()

    # =========================================================
    # UPLOAD / REMOÇÃO
    # =========================================================

    def novo_registro(self, equipamento_id: str, nome: str, tamanho: int,
                      content_type: str, caminho: str, ator: Ator) -> Anexo:
        """Cria a linha do anexo na sessão atual (sem commit)."""
        anexo = Anexo(
            equipment_id=equipamento_id,
            name=nome,
            size=tamanho,
            type=content_type,
            file_path=caminho,
            uploaded_by=ator.nome,
        )
        db.session.add(anexo)
        return anexo

    def enviar(self, equipamento_id: str, nome_arquivo: str, conteudo: bytes,
               content_type: str, ator: Ator) -> Anexo:
        """
        Grava o arquivo no storage e depois o registro + histórico.
        Se o banco falhar, o arquivo enviado é removido.
        """
        if db.session.get(Equipamento, equipamento_id) is None:
            raise NaoEncontrado('Equipamento não encontrado')
        if not nome_arquivo or conteudo is None:
            raise ErroValidacao('Nenhum arquivo enviado')
        if len(conteudo) > self.tamanho_maximo:
            limite_mb = self.tamanho_maximo // (1024 * 1024)
            raise ErroValidacao(f'Arquivo excede o limite de {limite_mb}MB')

        caminho = self.caminho_anexo(equipamento_id, nome_arquivo)
        self.storage.enviar(caminho, conteudo, content_type)

        try:
            with unidade_de_trabalho('anexo'):
                anexo = self.novo_registro(
                    equipamento_id, nome_arquivo, len(conteudo), content_type, caminho, ator
                )
                self.historico.registrar(
                    ator, 'equipment', equipamento_id, ANEXOU_ARQUIVO,
                    equipamento_id=equipamento_id,
                    campo='arquivo', antigo='', novo=nome_arquivo,
                )
        except Exception:
            self.remover_arquivos([caminho])
            raise

        logger.info(f"Anexo '{nome_arquivo}' adicionado ao equipamento {equipamento_id} por {ator}")
        return anexo

    def remover(self, anexo_id: str, ator: Ator) -> None:
        anexo = db.session.get(Anexo, anexo_id)
        if anexo is None:
            raise NaoEncontrado('Anexo não encontrado')

        caminho = anexo.file_path
        nome = anexo.name
        equipamento_id = anexo.equipment_id

        with unidade_de_trabalho('remoção de anexo'):
            db.session.delete(anexo)
            self.historico.registrar(
                ator, 'equipment', equipamento_id, REMOVEU_ARQUIVO,
                equipamento_id=equipamento_id,
                campo='arquivo', antigo=nome, novo='',
            )

        self.remover_arquivos([caminho])
        logger.info(f"Anexo '{nome}' removido do equipamento {equipamento_id} por {ator}")

    def remover_arquivos(self, caminhos: Iterable[str]) -> list:
        """
        Remove arquivos do storage depois que o banco já foi atualizado.
        Falhas não desfazem a operação; os caminhos órfãos são registrados
        no log e retornados.
        """
        caminhos = [c for c in caminhos if c]
        if not caminhos:
            return []
        try:
            self.storage.remover(caminhos)
        except ErroArmazenamento as e:
            logger.warning(f"Arquivos órfãos no storage ({len(caminhos)}): {caminhos} | {e}")
            return caminhos
        return []
