"""
SGP - Serviço de Compras
Solicitações de compra, fluxo de aprovação e conversão em equipamento.

Fluxo de status:
    pending  -> approved | rejected | acquired
    approved -> rejected | acquired
    rejected, acquired: finais
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from ..models.database import db, Compra, URGENCIAS_COMPRA, STATUS_COMPRA
from .contexto import Ator, unidade_de_trabalho
from .diff import (
    CampoRastreado, DATA,
    aplicar_alteracoes, calcular_alteracoes, instantaneo
)
from .equipamento_service import EquipamentoService
from .excecoes import ErroValidacao, NaoEncontrado
from .historico_service import (
    HistoricoService, CRIOU, EDITOU, EXCLUIU, ALTEROU_STATUS
)
from .storage import BaseStorage

logger = logging.getLogger(__name__)

CAMPOS_COMPRA = (
    CampoRastreado('description', 'description', 'descrição'),
    CampoRastreado('brand', 'brand', 'marca', opcional=True),
    CampoRastreado('model', 'model', 'modelo', opcional=True),
    CampoRastreado('specifications', 'specifications', 'especificações', opcional=True),
    CampoRastreado('location', 'location', 'localização', opcional=True),
    CampoRastreado('urgency', 'urgency', 'urgência', opcoes=URGENCIAS_COMPRA),
    CampoRastreado('expected_date', 'expectedDate', 'data prevista', tipo=DATA, opcional=True),
    CampoRastreado('supplier', 'supplier', 'fornecedor', opcional=True),
    CampoRastreado('observations', 'observations', 'observações', opcional=True),
)

# Campos definidos apenas na criação
CAMPOS_CRIACAO = CAMPOS_COMPRA + (
    CampoRastreado('requested_by', 'requestedBy', 'solicitante'),
    CampoRastreado('request_date', 'requestDate', 'data da solicitação', tipo=DATA),
)

CAMPO_STATUS = (CampoRastreado('status', 'status', 'status', opcoes=STATUS_COMPRA),)

TRANSICOES = {
    'pending': {'approved', 'rejected', 'acquired'},
    'approved': {'rejected', 'acquired'},
    'rejected': set(),
    'acquired': set(),
}


class CompraService:
    """Solicitações de compra e suas transições de status."""

    def __init__(self, config: dict, storage: BaseStorage):
        self.historico = HistoricoService(config)
        self.equipamentos = EquipamentoService(config, storage)

    # =========================================================
    # CONSULTAS
    # =========================================================

    def listar(self, status: Optional[str] = None, urgencia: Optional[str] = None) -> list:
        query = Compra.query
        if status:
            query = query.filter(Compra.status == status)
        if urgencia:
            query = query.filter(Compra.urgency == urgencia)
        return query.order_by(Compra.created_at.desc()).all()

    def obter(self, compra_id: str) -> Compra:
        compra = db.session.get(Compra, compra_id)
        if compra is None:
            raise NaoEncontrado('Compra não encontrada')
        return compra

    def estatisticas(self) -> dict:
        linhas = (
            db.session.query(Compra.status, db.func.count(Compra.id))
            .group_by(Compra.status)
            .all()
        )
        contagem = dict(linhas)
        return {
            'total': sum(contagem.values()),
            'pending': contagem.get('pending', 0),
            'approved': contagem.get('approved', 0),
            'rejected': contagem.get('rejected', 0),
            'acquired': contagem.get('acquired', 0),
        }

    # =========================================================
    # CRUD
    # =========================================================

    def criar(self, dados: dict, ator: Ator) -> Compra:
        dados = dict(dados or {})
        ausentes = [c for c in ('description', 'requestedBy', 'requestDate') if not dados.get(c)]
        if ausentes:
            raise ErroValidacao(f"Campos obrigatórios ausentes: {', '.join(ausentes)}")
        if dados.get('urgency') is None:
            dados['urgency'] = 'medium'

        compra = Compra(status='pending')
        aplicar_alteracoes(compra, calcular_alteracoes({}, dados, CAMPOS_CRIACAO))

        with unidade_de_trabalho('compra'):
            db.session.add(compra)
            db.session.flush()
            self.historico.registrar(ator, 'purchase', compra.id, CRIOU)

        logger.info(f"Solicitação de compra criada: '{compra.description}' por {ator}")
        return compra

    def atualizar(self, compra_id: str, dados: dict, ator: Ator) -> Compra:
        compra = self.obter(compra_id)
        alteracoes = calcular_alteracoes(instantaneo(compra, CAMPOS_COMPRA), dados, CAMPOS_COMPRA)
        if not alteracoes:
            return compra

        with unidade_de_trabalho('compra'):
            aplicar_alteracoes(compra, alteracoes)
            compra.updated_at = datetime.now(timezone.utc)
            self.historico.registrar_alteracoes(
                ator, 'purchase', compra_id, alteracoes, tipo_alteracao=EDITOU
            )
        return compra

    def excluir(self, compra_id: str, ator: Ator) -> None:
        compra = self.obter(compra_id)
        descricao = compra.description
        with unidade_de_trabalho('exclusão de compra'):
            db.session.delete(compra)
            self.historico.registrar(
                ator, 'purchase', compra_id, EXCLUIU,
                campo='compra', antigo=descricao, novo='',
            )
        logger.info(f"Solicitação de compra '{descricao}' excluída por {ator}")

    # =========================================================
    # TRANSIÇÕES DE STATUS
    # =========================================================

    def _transicionar(self, compra: Compra, novo_status: str, ator: Ator, **campos) -> None:
        """
        Aplica a mudança de status na sessão atual. O valor antigo do
        histórico vem do status gravado, como em qualquer outra edição.
        """
        if novo_status not in TRANSICOES.get(compra.status, set()):
            raise ErroValidacao(
                f"Transição inválida: compra com status '{compra.status}' não pode ir para '{novo_status}'"
            )

        alteracoes = calcular_alteracoes(
            instantaneo(compra, CAMPO_STATUS), {'status': novo_status}, CAMPO_STATUS
        )
        aplicar_alteracoes(compra, alteracoes)
        for coluna, valor in campos.items():
            setattr(compra, coluna, valor)
        compra.updated_at = datetime.now(timezone.utc)
        self.historico.registrar_alteracoes(
            ator, 'purchase', compra.id, alteracoes, tipo_alteracao=ALTEROU_STATUS
        )

    def aprovar(self, compra_id: str, ator: Ator) -> Compra:
        compra = self.obter(compra_id)
        with unidade_de_trabalho('aprovação de compra'):
            self._transicionar(
                compra, 'approved', ator,
                approved_by=ator.nome,
                approval_date=datetime.now(timezone.utc),
            )
        logger.info(f"Compra {compra_id} aprovada por {ator}")
        return compra

    def rejeitar(self, compra_id: str, motivo: Optional[str], ator: Ator) -> Compra:
        if not isinstance(motivo, str) or not motivo.strip():
            raise ErroValidacao('Motivo da rejeição é obrigatório')
        motivo = motivo.strip()

        compra = self.obter(compra_id)
        with unidade_de_trabalho('rejeição de compra'):
            self._transicionar(
                compra, 'rejected', ator,
                rejection_reason=motivo,
                approved_by=ator.nome,
                approval_date=datetime.now(timezone.utc),
            )
        logger.info(f"Compra {compra_id} rejeitada por {ator}: {motivo}")
        return compra

    def marcar_adquirida(self, compra_id: str, ator: Ator) -> Compra:
        compra = self.obter(compra_id)
        with unidade_de_trabalho('aquisição de compra'):
            self._transicionar(compra, 'acquired', ator)
        logger.info(f"Compra {compra_id} marcada como adquirida por {ator}")
        return compra

    def converter_em_equipamento(self, compra_id: str, dados: dict, ator: Ator):
        """
        Cria o equipamento a partir da compra (os dados enviados têm
        prioridade) e marca a compra como adquirida, na mesma transação.
        """
        compra = self.obter(compra_id)
        if 'acquired' not in TRANSICOES.get(compra.status, set()):
            raise ErroValidacao(
                f"Compra com status '{compra.status}' não pode ser convertida em equipamento"
            )

        dados = dados or {}
        padroes = {
            'description': compra.description,
            'brand': compra.brand,
            'model': compra.model,
            'specs': compra.specifications,
            'location': compra.location,
        }
        payload = {chave: valor for chave, valor in dados.items() if valor not in (None, '')}
        for chave, valor in padroes.items():
            payload.setdefault(chave, valor)

        with unidade_de_trabalho('conversão de compra'):
            equipamento = self.equipamentos.novo_equipamento(payload)
            self.historico.registrar(
                ator, 'equipment', equipamento.id, CRIOU, equipamento_id=equipamento.id
            )
            self._transicionar(compra, 'acquired', ator, equipment_id=equipamento.id)

        logger.info(
            f"Compra {compra_id} convertida no equipamento {equipamento.asset_number} por {ator}"
        )
        return equipamento
