"""
SGP - Serviço de Equipamentos
Cadastro, atualização parcial com histórico por campo, transferência,
manutenção e exclusão em cascata.
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func

from ..models.database import (
    db, Equipamento, Compra, HistoricoEntrada, STATUS_EQUIPAMENTO
)
from .anexo_service import AnexoService
from .contexto import Ator, unidade_de_trabalho
from .diff import (
    CampoRastreado, DATA, NUMERO,
    aplicar_alteracoes, calcular_alteracoes, instantaneo
)
from .excecoes import ErroValidacao, NaoEncontrado
from .historico_service import (
    HistoricoService, CRIOU, EDITOU, EXCLUIU, MANUTENCAO, TRANSFERIU
)
from .patrimonio import NumeracaoPatrimonio
from .storage import BaseStorage

logger = logging.getLogger(__name__)

CAMPOS_EQUIPAMENTO = (
    CampoRastreado('asset_number', 'assetNumber', 'número de patrimônio'),
    CampoRastreado('description', 'description', 'descrição'),
    CampoRastreado('brand', 'brand', 'marca'),
    CampoRastreado('model', 'model', 'modelo'),
    CampoRastreado('specs', 'specs', 'especificações', opcional=True),
    CampoRastreado('status', 'status', 'status', opcoes=STATUS_EQUIPAMENTO),
    CampoRastreado('location', 'location', 'localização'),
    CampoRastreado('responsible', 'responsible', 'responsável'),
    CampoRastreado('acquisition_date', 'acquisitionDate', 'data de aquisição', tipo=DATA),
    CampoRastreado('invoice_date', 'invoiceDate', 'data da nota fiscal', tipo=DATA, opcional=True),
    CampoRastreado('value', 'value', 'valor', tipo=NUMERO),
    CampoRastreado('maintenance_description', 'maintenanceDescription',
                   'descrição de manutenção', opcional=True),
)

CAMPOS_TRANSFERENCIA = tuple(
    c for c in CAMPOS_EQUIPAMENTO if c.coluna in ('location', 'responsible')
)

OBRIGATORIOS_CRIACAO = (
    'description', 'brand', 'model', 'location', 'responsible', 'acquisitionDate', 'value'
)


class EquipamentoService:
    """Cadastro e ciclo de vida dos equipamentos, com histórico por campo."""

    def __init__(self, config: dict, storage: BaseStorage):
        self.historico = HistoricoService(config)
        self.anexos = AnexoService(config, storage, self.historico)
        self.numeracao = NumeracaoPatrimonio(config.get('ASSET_NUMBER_PREFIX', 'TOP'))

    # =========================================================
    # CONSULTAS
    # =========================================================

    def listar(self, status: Optional[str] = None, busca: Optional[str] = None) -> list:
        query = Equipamento.query
        if status:
            query = query.filter(Equipamento.status == status)
        if busca:
            query = query.filter(
                db.or_(
                    Equipamento.asset_number.ilike(f'%{busca}%'),
                    Equipamento.description.ilike(f'%{busca}%'),
                    Equipamento.brand.ilike(f'%{busca}%'),
                    Equipamento.responsible.ilike(f'%{busca}%')
                )
            )
        return query.order_by(Equipamento.created_at.desc()).all()

    def obter(self, equipamento_id: str) -> Equipamento:
        equipamento = db.session.get(Equipamento, equipamento_id)
        if equipamento is None:
            raise NaoEncontrado('Equipamento não encontrado')
        return equipamento

    def detalhar(self, equipamento_id: str) -> dict:
        """Equipamento com a lista de anexos (URLs públicas incluídas)."""
        equipamento = self.obter(equipamento_id)
        anexos = [self.anexos.para_api(a) for a in equipamento.anexos]
        return equipamento.to_dict(anexos=anexos)

    def estatisticas(self) -> dict:
        linhas = (
            db.session.query(
                Equipamento.status,
                func.count(Equipamento.id),
                func.coalesce(func.sum(Equipamento.value), 0),
            )
            .group_by(Equipamento.status)
            .all()
        )
        stats = {'total': 0, 'active': 0, 'maintenance': 0, 'inactive': 0, 'totalValue': 0.0}
        for status, quantidade, soma in linhas:
            stats['total'] += quantidade
            stats['totalValue'] += float(soma or 0)
            if status == 'active':
                stats['active'] += quantidade
            elif status == 'maintenance':
                stats['maintenance'] += quantidade
            elif status == 'deactivated':
                stats['inactive'] += quantidade
        stats['totalValue'] = round(stats['totalValue'], 2)
        return stats

    def historico_do_equipamento(self, equipamento_id: str) -> list:
        return self.historico.por_equipamento(equipamento_id)

    def proximo_numero(self) -> str:
        return self.numeracao.proximo_numero()

    def validar_numero(self, numero: str, excluir_id: Optional[str] = None) -> dict:
        """Resultado no formato usado pelo formulário: {valid, message}."""
        try:
            self.numeracao.validar_numero(numero, excluir_id=excluir_id)
        except ErroValidacao as e:
            return {'valid': False, 'message': e.mensagem}
        return {'valid': True}

    # =========================================================
    # CRIAÇÃO / ATUALIZAÇÃO
    # =========================================================

    def novo_equipamento(self, dados: dict) -> Equipamento:
        """
        Valida os dados e monta o equipamento na sessão atual, sem commit.
        Usado também pela conversão de compras.
        """
        ausentes = [c for c in OBRIGATORIOS_CRIACAO if dados.get(c) in (None, '')]
        if ausentes:
            raise ErroValidacao(f"Campos obrigatórios ausentes: {', '.join(ausentes)}")

        payload = dict(dados)
        if payload.get('assetNumber'):
            payload['assetNumber'] = self.numeracao.validar_numero(payload['assetNumber'])
        else:
            payload['assetNumber'] = self.numeracao.proximo_numero()
        payload.setdefault('status', 'active')
        if payload['status'] is None:
            payload['status'] = 'active'

        equipamento = Equipamento()
        aplicar_alteracoes(equipamento, calcular_alteracoes({}, payload, CAMPOS_EQUIPAMENTO))
        db.session.add(equipamento)
        db.session.flush()
        return equipamento

    def criar(self, dados: dict, ator: Ator) -> Equipamento:
        with unidade_de_trabalho('equipamento'):
            equipamento = self.novo_equipamento(dados)
            self.historico.registrar(
                ator, 'equipment', equipamento.id, CRIOU, equipamento_id=equipamento.id
            )
        logger.info(f"Equipamento criado: {equipamento.asset_number} por {ator}")
        return equipamento

    def atualizar(self, equipamento_id: str, dados: dict, ator: Ator) -> Equipamento:
        """
        Atualização parcial: só os campos presentes e diferentes são gravados,
        cada um com sua entrada de histórico.
        """
        equipamento = self.obter(equipamento_id)

        payload = dict(dados or {})
        if payload.get('assetNumber') is not None:
            payload['assetNumber'] = self.numeracao.validar_numero(
                payload['assetNumber'], excluir_id=equipamento_id
            )

        alteracoes = calcular_alteracoes(
            instantaneo(equipamento, CAMPOS_EQUIPAMENTO), payload, CAMPOS_EQUIPAMENTO
        )
        if not alteracoes:
            return equipamento

        with unidade_de_trabalho('equipamento'):
            aplicar_alteracoes(equipamento, alteracoes)
            equipamento.updated_at = datetime.now(timezone.utc)
            self.historico.registrar_alteracoes(
                ator, 'equipment', equipamento_id, alteracoes,
                tipo_alteracao=EDITOU, equipamento_id=equipamento_id,
            )

        logger.info(
            f"Equipamento {equipamento.asset_number} atualizado por {ator}: "
            f"{', '.join(a.rotulo for a in alteracoes)}"
        )
        return equipamento

    def transferir(self, equipamento_id: str, dados: dict, ator: Ator) -> Equipamento:
        """Troca localização e responsável; registra apenas o que mudou."""
        equipamento = self.obter(equipamento_id)
        dados = dados or {}
        for chave in ('location', 'responsible'):
            valor = dados.get(chave)
            if not isinstance(valor, str) or not valor.strip():
                raise ErroValidacao(f'Campo obrigatório: {chave}')

        alteracoes = calcular_alteracoes(
            instantaneo(equipamento, CAMPOS_TRANSFERENCIA),
            {'location': dados['location'], 'responsible': dados['responsible']},
            CAMPOS_TRANSFERENCIA,
        )
        if not alteracoes:
            return equipamento

        with unidade_de_trabalho('transferência'):
            aplicar_alteracoes(equipamento, alteracoes)
            equipamento.updated_at = datetime.now(timezone.utc)
            self.historico.registrar_alteracoes(
                ator, 'equipment', equipamento_id, alteracoes,
                tipo_alteracao=TRANSFERIU, equipamento_id=equipamento_id,
            )

        logger.info(f"Equipamento {equipamento.asset_number} transferido por {ator}")
        return equipamento

    def registrar_manutencao(self, equipamento_id: str, descricao: Optional[str], ator: Ator) -> Equipamento:
        equipamento = self.obter(equipamento_id)
        if not isinstance(descricao, str) or not descricao.strip():
            raise ErroValidacao('Descrição da manutenção é obrigatória')
        descricao = descricao.strip()

        anterior = equipamento.maintenance_description or ''
        with unidade_de_trabalho('manutenção'):
            equipamento.status = 'maintenance'
            equipamento.maintenance_description = descricao
            equipamento.updated_at = datetime.now(timezone.utc)
            self.historico.registrar(
                ator, 'equipment', equipamento_id, MANUTENCAO,
                equipamento_id=equipamento_id,
                campo='descrição de manutenção', antigo=anterior, novo=descricao,
            )

        logger.info(f"Manutenção registrada para {equipamento.asset_number} por {ator}")
        return equipamento

    # =========================================================
    # EXCLUSÃO EM CASCATA
    # =========================================================

    def excluir(self, equipamento_id: str, ator: Ator) -> list:
        """
        Remove anexos, termos, histórico e o equipamento em uma transação e
        grava a entrada de exclusão (sem equipment_id, pois ele deixa de existir).
        Os arquivos do storage são apagados depois do commit.

        Retorna os caminhos que não puderam ser removidos do storage.
        """
        equipamento = self.obter(equipamento_id)
        anexos = equipamento.anexos.all()
        termos = equipamento.termos.all()

        caminhos = [a.file_path for a in anexos]
        caminhos += [t.pdf_path for t in termos if t.pdf_path and t.pdf_path not in caminhos]
        descricao = f'{equipamento.asset_number} - {equipamento.description}'

        with unidade_de_trabalho('exclusão de equipamento'):
            for anexo in anexos:
                db.session.delete(anexo)
            for termo in termos:
                db.session.delete(termo)
            HistoricoEntrada.query.filter_by(equipment_id=equipamento_id).delete(
                synchronize_session=False
            )
            Compra.query.filter_by(equipment_id=equipamento_id).update(
                {'equipment_id': None}, synchronize_session=False
            )
            db.session.delete(equipamento)
            db.session.flush()
            self.historico.registrar(
                ator, 'equipment', equipamento_id, EXCLUIU,
                equipamento_id=None,
                campo='equipamento', antigo=descricao, novo='',
            )

        orfaos = self.anexos.remover_arquivos(caminhos)
        logger.info(
            f"Equipamento {descricao} excluído por {ator} "
            f"({len(anexos)} anexo(s), {len(termos)} termo(s))"
        )
        return orfaos
