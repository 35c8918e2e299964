"""
SGP - Serviço de Histórico (auditoria)
Grava uma entrada imutável por evento e oferece as consultas do log.
"""
import logging
from datetime import datetime
from typing import Optional

from ..models.database import db, HistoricoEntrada, TIPOS_ENTIDADE
from .contexto import Ator, unidade_de_trabalho
from .diff import Alteracao
from .excecoes import ErroValidacao

logger = logging.getLogger(__name__)

# Tipos de alteração registrados pelo sistema
CRIOU = 'created'
EDITOU = 'edited'
EXCLUIU = 'deleted'
MANUTENCAO = 'maintenance'
ALTEROU_STATUS = 'status-changed'
ANEXOU_ARQUIVO = 'file-attached'
REMOVEU_ARQUIVO = 'file-removed'
TRANSFERIU = 'transferred'


class HistoricoService:
    """Gravação e consulta do histórico de alterações."""

    def __init__(self, config: Optional[dict] = None):
        config = config or {}
        self.limite_padrao = config.get('HISTORY_RECENT_DEFAULT', 10)
        self.limite_maximo = config.get('HISTORY_RECENT_MAX', 200)

    # =========================================================
    # GRAVAÇÃO
    # =========================================================

    def registrar(
        self,
        ator: Ator,
        entidade_tipo: str,
        entidade_id: Optional[str],
        tipo_alteracao: str,
        equipamento_id: Optional[str] = None,
        campo: Optional[str] = None,
        antigo: Optional[str] = None,
        novo: Optional[str] = None,
        timestamp: Optional[datetime] = None,
    ) -> HistoricoEntrada:
        """
        Adiciona a entrada à sessão atual. O commit é feito pela unidade de
        trabalho da operação que originou o evento.
        """
        entrada = HistoricoEntrada(
            equipment_id=equipamento_id,
            entity_type=entidade_tipo,
            entity_id=entidade_id,
            user_name=ator.nome,
            change_type=tipo_alteracao,
            field=campo,
            old_value=antigo,
            new_value=novo,
        )
        if timestamp is not None:
            entrada.timestamp = timestamp
        db.session.add(entrada)
        return entrada

    def registrar_alteracoes(
        self,
        ator: Ator,
        entidade_tipo: str,
        entidade_id: str,
        alteracoes: list[Alteracao],
        tipo_alteracao: str = EDITOU,
        equipamento_id: Optional[str] = None,
    ) -> list:
        """Uma entrada por campo alterado, na ordem do diff."""
        entradas = []
        for alteracao in alteracoes:
            entradas.append(self.registrar(
                ator, entidade_tipo, entidade_id, tipo_alteracao,
                equipamento_id=equipamento_id,
                campo=alteracao.rotulo,
                antigo=alteracao.texto_antigo,
                novo=alteracao.texto_novo,
            ))
        return entradas

    def criar(self, dados: dict, ator: Ator) -> HistoricoEntrada:
        """Entrada manual (POST /history)."""
        campos = HistoricoEntrada.MAPA.para_banco(dados)
        entidade_tipo = campos.get('entity_type')
        tipo_alteracao = campos.get('change_type')

        if entidade_tipo not in TIPOS_ENTIDADE:
            raise ErroValidacao(f"entityType inválido. Use: {', '.join(TIPOS_ENTIDADE)}")
        if not isinstance(tipo_alteracao, str) or not tipo_alteracao.strip():
            raise ErroValidacao('changeType é obrigatório')

        def texto(coluna):
            valor = campos.get(coluna)
            return None if valor in (None, '') else str(valor)

        with unidade_de_trabalho('entrada de histórico'):
            entrada = self.registrar(
                ator, entidade_tipo, texto('entity_id'), tipo_alteracao.strip(),
                equipamento_id=texto('equipment_id'),
                campo=texto('field'),
                antigo=texto('old_value'),
                novo=texto('new_value'),
            )
        logger.info(f"Histórico manual: {entidade_tipo} {tipo_alteracao} por {ator}")
        return entrada

    # =========================================================
    # CONSULTAS (mais recentes primeiro)
    # =========================================================

    @staticmethod
    def _ordenado(query):
        return query.order_by(HistoricoEntrada.timestamp.desc(), HistoricoEntrada.id.desc())

    def listar(self) -> list:
        return self._ordenado(HistoricoEntrada.query).all()

    def recentes(self, limite=None) -> list:
        if limite is None:
            limite = self.limite_padrao
        try:
            limite = int(limite)
        except (TypeError, ValueError):
            raise ErroValidacao('limit deve ser um número inteiro')
        if limite < 1:
            raise ErroValidacao('limit deve ser maior que zero')
        limite = min(limite, self.limite_maximo)
        return self._ordenado(HistoricoEntrada.query).limit(limite).all()

    def por_equipamento(self, equipamento_id: str) -> list:
        return self._ordenado(
            HistoricoEntrada.query.filter_by(equipment_id=equipamento_id)
        ).all()

    def por_tipo_entidade(self, entidade_tipo: str) -> list:
        if entidade_tipo not in TIPOS_ENTIDADE:
            raise ErroValidacao(f"Tipo de entidade inválido. Use: {', '.join(TIPOS_ENTIDADE)}")
        return self._ordenado(
            HistoricoEntrada.query.filter_by(entity_type=entidade_tipo)
        ).all()
