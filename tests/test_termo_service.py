import base64

import pytest

from sgp.models.database import db, Anexo, HistoricoEntrada, TermoResponsabilidade
from sgp.services.equipamento_service import EquipamentoService
from sgp.services.excecoes import ErroValidacao, NaoEncontrado
from sgp.services.termo_service import TermoService

PDF = b'%PDF-1.4 termo'


@pytest.fixture
def service(app, storage):
    return TermoService(app.config, storage)


@pytest.fixture
def equipamento(app, storage, ator, dados_equipamento):
    return EquipamentoService(app.config, storage).criar(dados_equipamento(), ator)


def _dados(equipamento_id, **extra):
    dados = {
        'equipmentId': equipamento_id,
        'responsiblePerson': 'João Silva',
        'responsibleEmail': 'joao@empresa.com',
        'termDate': '2024-07-01',
    }
    dados.update(extra)
    return dados


def test_criar_termo_sem_pdf(service, equipamento, ator):
    termo = service.criar(_dados(equipamento.id), ator)

    assert termo.status == 'signed'
    assert termo.pdf_url is None
    assert Anexo.query.count() == 0

    entrada = HistoricoEntrada.query.filter_by(entity_type='responsibility_term').one()
    assert entrada.entity_id == termo.id
    assert entrada.equipment_id == equipamento.id
    assert entrada.change_type == 'created'


def test_criar_termo_com_pdf(service, storage, equipamento, ator):
    pdf = 'data:application/pdf;base64,' + base64.b64encode(PDF).decode()

    termo = service.criar(_dados(equipamento.id, pdfBase64=pdf), ator)

    assert termo.pdf_path.startswith(f'terms/termo_{equipamento.id}_')
    assert termo.pdf_url == storage.url_publica(termo.pdf_path)
    assert storage.existe(termo.pdf_path)

    anexo = Anexo.query.filter_by(equipment_id=equipamento.id).one()
    assert anexo.file_path == termo.pdf_path
    assert anexo.type == 'application/pdf'
    assert anexo.size == len(PDF)


def test_criar_termo_pdf_invalido(service, equipamento, ator):
    with pytest.raises(ErroValidacao):
        service.criar(_dados(equipamento.id, pdfBase64='não é base64!'), ator)
    assert TermoResponsabilidade.query.count() == 0


def test_criar_termo_equipamento_inexistente(service, ator):
    with pytest.raises(NaoEncontrado):
        service.criar(_dados('nao-existe'), ator)


def test_criar_termo_sem_responsavel(service, equipamento, ator):
    with pytest.raises(ErroValidacao):
        service.criar(_dados(equipamento.id, responsiblePerson=''), ator)


def test_listar_por_equipamento(service, equipamento, ator):
    service.criar(_dados(equipamento.id), ator)
    service.criar(_dados(equipamento.id, responsiblePerson='Maria'), ator)

    assert len(service.listar_por_equipamento(equipamento.id)) == 2
    with pytest.raises(NaoEncontrado):
        service.listar_por_equipamento('nao-existe')


def test_atualizar_status(service, equipamento, ator):
    termo = service.criar(_dados(equipamento.id), ator)

    service.atualizar_status(termo.id, 'cancelled', ator)

    assert db.session.get(TermoResponsabilidade, termo.id).status == 'cancelled'
    entrada = HistoricoEntrada.query.filter_by(change_type='status-changed').one()
    assert (entrada.old_value, entrada.new_value) == ('signed', 'cancelled')

    with pytest.raises(ErroValidacao):
        service.atualizar_status(termo.id, 'arquivado', ator)


def test_excluir_termo_remove_pdf_e_anexo(service, storage, equipamento, ator):
    pdf = base64.b64encode(PDF).decode()
    termo = service.criar(_dados(equipamento.id, pdfBase64=pdf), ator)
    termo_id, caminho = termo.id, termo.pdf_path

    service.excluir(termo_id, ator)

    assert db.session.get(TermoResponsabilidade, termo_id) is None
    assert Anexo.query.count() == 0
    assert not storage.existe(caminho)
    assert HistoricoEntrada.query.filter_by(entity_id=termo_id, change_type='deleted').count() == 1
