"""
SGP - Termos de Responsabilidade
Registro do responsável por um equipamento, com PDF assinado opcional.
"""
import base64
import binascii
import logging
from datetime import datetime, timezone

from ..models.database import db, Anexo, Equipamento, TermoResponsabilidade, STATUS_TERMO
from .anexo_service import AnexoService
from .contexto import Ator, unidade_de_trabalho
from .diff import (
    CampoRastreado, DATA,
    aplicar_alteracoes, calcular_alteracoes, instantaneo
)
from .excecoes import ErroValidacao, NaoEncontrado
from .historico_service import HistoricoService, CRIOU, EXCLUIU, ALTEROU_STATUS
from .storage import BaseStorage

logger = logging.getLogger(__name__)

CAMPOS_TERMO = (
    CampoRastreado('responsible_person', 'responsiblePerson', 'responsável'),
    CampoRastreado('responsible_email', 'responsibleEmail', 'e-mail', opcional=True),
    CampoRastreado('responsible_phone', 'responsiblePhone', 'telefone', opcional=True),
    CampoRastreado('responsible_department', 'responsibleDepartment', 'departamento', opcional=True),
    CampoRastreado('term_date', 'termDate', 'data do termo', tipo=DATA),
    CampoRastreado('observations', 'observations', 'observações', opcional=True),
    CampoRastreado('manual_signature', 'manualSignature', 'assinatura', opcional=True),
    CampoRastreado('status', 'status', 'status do termo', opcoes=STATUS_TERMO),
)

CAMPO_STATUS = tuple(c for c in CAMPOS_TERMO if c.coluna == 'status')

ROTULO_TERMO = 'termo de responsabilidade'


def _decodificar_pdf(pdf_base64: str) -> bytes:
    """Aceita base64 puro ou data URL ('data:application/pdf;base64,...')."""
    if not isinstance(pdf_base64, str):
        raise ErroValidacao('pdfBase64 inválido')
    if ',' in pdf_base64 and pdf_base64.lstrip().startswith('data:'):
        pdf_base64 = pdf_base64.split(',', 1)[1]
    try:
        return base64.b64decode(pdf_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ErroValidacao('pdfBase64 inválido')


class TermoService:
    """Termos de responsabilidade e seus PDFs."""

    def __init__(self, config: dict, storage: BaseStorage):
        self.storage = storage
        self.historico = HistoricoService(config)
        self.anexos = AnexoService(config, storage, self.historico)

    def _equipamento(self, equipamento_id: str) -> Equipamento:
        equipamento = None
        if isinstance(equipamento_id, str) and equipamento_id:
            equipamento = db.session.get(Equipamento, equipamento_id)
        if equipamento is None:
            raise NaoEncontrado('Equipamento não encontrado')
        return equipamento

    def listar_por_equipamento(self, equipamento_id: str) -> list:
        self._equipamento(equipamento_id)
        return (
            TermoResponsabilidade.query
            .filter_by(equipment_id=equipamento_id)
            .order_by(TermoResponsabilidade.created_at.desc())
            .all()
        )

    def obter(self, termo_id: str) -> TermoResponsabilidade:
        termo = db.session.get(TermoResponsabilidade, termo_id)
        if termo is None:
            raise NaoEncontrado('Termo não encontrado')
        return termo

    def criar(self, dados: dict, ator: Ator) -> TermoResponsabilidade:
        """
        Cria o termo. Com `pdfBase64`, o PDF vai para o storage e também
        fica registrado como anexo do equipamento.
        """
        dados = dict(dados or {})
        equipamento_id = dados.get('equipmentId')
        ausentes = [c for c in ('equipmentId', 'responsiblePerson', 'termDate') if not dados.get(c)]
        if ausentes:
            raise ErroValidacao(f"Campos obrigatórios ausentes: {', '.join(ausentes)}")
        self._equipamento(equipamento_id)
        if dados.get('status') is None:
            dados['status'] = 'signed'

        termo = TermoResponsabilidade(equipment_id=equipamento_id)
        aplicar_alteracoes(termo, calcular_alteracoes({}, dados, CAMPOS_TERMO))

        pdf = _decodificar_pdf(dados['pdfBase64']) if dados.get('pdfBase64') else None
        caminho = None
        if pdf is not None:
            caminho = self.anexos.caminho_termo(equipamento_id)
            self.storage.enviar(caminho, pdf, 'application/pdf')
            termo.pdf_path = caminho
            termo.pdf_url = self.storage.url_publica(caminho)

        try:
            with unidade_de_trabalho('termo de responsabilidade'):
                db.session.add(termo)
                db.session.flush()
                if pdf is not None:
                    self.anexos.novo_registro(
                        equipamento_id, caminho.rsplit('/', 1)[-1], len(pdf),
                        'application/pdf', caminho, ator
                    )
                self.historico.registrar(
                    ator, 'responsibility_term', termo.id, CRIOU,
                    equipamento_id=equipamento_id,
                    campo=ROTULO_TERMO, antigo='', novo=termo.responsible_person,
                )
        except Exception:
            if caminho:
                self.anexos.remover_arquivos([caminho])
            raise

        logger.info(f"Termo criado para equipamento {equipamento_id} ({termo.responsible_person}) por {ator}")
        return termo

    def atualizar_status(self, termo_id: str, status: str, ator: Ator) -> TermoResponsabilidade:
        if not status:
            raise ErroValidacao('Status é obrigatório')
        termo = self.obter(termo_id)

        alteracoes = calcular_alteracoes(instantaneo(termo, CAMPO_STATUS), {'status': status}, CAMPO_STATUS)
        if not alteracoes:
            return termo

        with unidade_de_trabalho('status do termo'):
            aplicar_alteracoes(termo, alteracoes)
            termo.updated_at = datetime.now(timezone.utc)
            self.historico.registrar_alteracoes(
                ator, 'responsibility_term', termo_id, alteracoes,
                tipo_alteracao=ALTEROU_STATUS, equipamento_id=termo.equipment_id,
            )
        return termo

    def excluir(self, termo_id: str, ator: Ator) -> None:
        termo = self.obter(termo_id)
        equipamento_id = termo.equipment_id
        caminho = termo.pdf_path
        responsavel = termo.responsible_person

        with unidade_de_trabalho('exclusão de termo'):
            if caminho:
                Anexo.query.filter_by(equipment_id=equipamento_id, file_path=caminho).delete(
                    synchronize_session='fetch'
                )
            db.session.delete(termo)
            self.historico.registrar(
                ator, 'responsibility_term', termo_id, EXCLUIU,
                equipamento_id=equipamento_id,
                campo=ROTULO_TERMO, antigo=responsavel, novo='',
            )

        if caminho:
            self.anexos.remover_arquivos([caminho])
        logger.info(f"Termo {termo_id} excluído por {ator}")
