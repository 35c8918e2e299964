from decimal import Decimal
from unittest import mock

import pytest
from sqlalchemy.exc import SQLAlchemyError

from sgp.models.database import (
    db, Anexo, Compra, Equipamento, HistoricoEntrada, TermoResponsabilidade
)
from sgp.services.equipamento_service import EquipamentoService
from sgp.services.excecoes import ErroPersistencia, ErroValidacao, NaoEncontrado
from sgp.services.historico_service import HistoricoService


@pytest.fixture
def service(app, storage):
    return EquipamentoService(app.config, storage)


def _entradas(equipamento_id, tipo=None):
    query = HistoricoEntrada.query.filter_by(equipment_id=equipamento_id)
    if tipo:
        query = query.filter_by(change_type=tipo)
    return query.all()


def test_criar_aloca_numeros_em_sequencia(service, ator, dados_equipamento):
    primeiro = service.criar(dados_equipamento(), ator)
    segundo = service.criar(dados_equipamento(description='Monitor'), ator)

    assert primeiro.asset_number == 'TOP-0001'
    assert segundo.asset_number == 'TOP-0002'
    assert primeiro.status == 'active'
    assert primeiro.value == Decimal('4500.50')

    criacao = _entradas(primeiro.id, 'created')
    assert len(criacao) == 1
    assert criacao[0].user_name == 'Maria'
    assert criacao[0].entity_type == 'equipment'


def test_criar_com_numero_informado(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(assetNumber='top-0100'), ator)
    assert equipamento.asset_number == 'TOP-0100'

    with pytest.raises(ErroValidacao, match='já está em uso'):
        service.criar(dados_equipamento(assetNumber='TOP-0100'), ator)


def test_criar_sem_campos_obrigatorios(service, ator):
    with pytest.raises(ErroValidacao, match='Campos obrigatórios'):
        service.criar({'description': 'Notebook'}, ator)
    assert Equipamento.query.count() == 0
    assert HistoricoEntrada.query.count() == 0


def test_atualizar_gera_uma_entrada_por_campo(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)

    service.atualizar(equipamento.id, {'brand': 'Dell'}, ator)

    edicoes = _entradas(equipamento.id, 'edited')
    assert [(e.field, e.old_value, e.new_value) for e in edicoes] == [('marca', 'HP', 'Dell')]
    assert db.session.get(Equipamento, equipamento.id).brand == 'Dell'


def test_atualizar_sem_mudanca_nao_grava(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)

    service.atualizar(equipamento.id, {'brand': 'HP', 'value': '4500.50', 'specs': ''}, ator)

    assert _entradas(equipamento.id, 'edited') == []


def test_atualizar_varios_campos(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)

    service.atualizar(equipamento.id, {'location': 'B', 'value': 5000, 'model': 'ProBook 440'}, ator)

    edicoes = {e.field: (e.old_value, e.new_value) for e in _entradas(equipamento.id, 'edited')}
    assert edicoes == {'localização': ('A', 'B'), 'valor': ('4500.5', '5000')}


def test_atualizar_numero_duplicado(service, ator, dados_equipamento):
    service.criar(dados_equipamento(), ator)
    segundo = service.criar(dados_equipamento(), ator)

    with pytest.raises(ErroValidacao):
        service.atualizar(segundo.id, {'assetNumber': 'TOP-0001'}, ator)

    # o próprio número continua válido
    service.atualizar(segundo.id, {'assetNumber': 'TOP-0002'}, ator)


def test_atualizar_inexistente(service, ator):
    with pytest.raises(NaoEncontrado):
        service.atualizar('nao-existe', {'brand': 'Dell'}, ator)


def test_transferir(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)

    service.transferir(equipamento.id, {'location': 'B', 'responsible': 'João'}, ator)

    entradas = _entradas(equipamento.id, 'transferred')
    assert [(e.field, e.old_value, e.new_value) for e in entradas] == [('localização', 'A', 'B')]

    with pytest.raises(ErroValidacao):
        service.transferir(equipamento.id, {'location': 'C'}, ator)


def test_registrar_manutencao(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)

    service.registrar_manutencao(equipamento.id, 'Troca de tela', ator)

    atualizado = db.session.get(Equipamento, equipamento.id)
    assert atualizado.status == 'maintenance'
    assert atualizado.maintenance_description == 'Troca de tela'
    entrada = _entradas(equipamento.id, 'maintenance')[0]
    assert entrada.new_value == 'Troca de tela'

    with pytest.raises(ErroValidacao):
        service.registrar_manutencao(equipamento.id, '  ', ator)


def test_estatisticas(service, ator, dados_equipamento):
    service.criar(dados_equipamento(value=100), ator)
    service.criar(dados_equipamento(value=50.25, status='maintenance'), ator)
    service.criar(dados_equipamento(value=10, status='deactivated'), ator)

    assert service.estatisticas() == {
        'total': 3, 'active': 1, 'maintenance': 1, 'inactive': 1, 'totalValue': 160.25,
    }


def test_listar_com_filtros(service, ator, dados_equipamento):
    service.criar(dados_equipamento(description='Notebook'), ator)
    service.criar(dados_equipamento(description='Impressora', brand='Epson', status='maintenance'), ator)

    assert len(service.listar()) == 2
    assert [e.brand for e in service.listar(status='maintenance')] == ['Epson']
    assert [e.description for e in service.listar(busca='impress')] == ['Impressora']


def test_validar_numero_resultado(service, ator, dados_equipamento):
    service.criar(dados_equipamento(), ator)

    assert service.validar_numero('TOP-0002') == {'valid': True}
    assert service.validar_numero('TOP-0001')['valid'] is False
    assert service.validar_numero('TOP-1') == {'valid': False, 'message': 'Formato inválido. Use TOP-0000'}


def test_excluir_em_cascata(service, storage, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)
    outro = service.criar(dados_equipamento(), ator)
    eq_id = equipamento.id

    a1 = service.anexos.enviar(eq_id, 'nota.pdf', b'%PDF-1', 'application/pdf', ator)
    a2 = service.anexos.enviar(eq_id, 'foto.jpg', b'\xff\xd8', 'image/jpeg', ator)
    caminhos = [a1.file_path, a2.file_path]
    assert all(storage.existe(c) for c in caminhos)

    compra = Compra(description='Notebook', requested_by='Ana', request_date=equipamento.acquisition_date,
                    status='acquired', equipment_id=eq_id)
    db.session.add(compra)
    db.session.add(TermoResponsabilidade(equipment_id=eq_id, responsible_person='João',
                                         term_date=equipamento.acquisition_date))
    db.session.commit()
    compra_id = compra.id

    orfaos = service.excluir(eq_id, ator)

    assert orfaos == []
    assert not any(storage.existe(c) for c in caminhos)
    assert db.session.get(Equipamento, eq_id) is None
    assert Anexo.query.filter_by(equipment_id=eq_id).count() == 0
    assert TermoResponsabilidade.query.filter_by(equipment_id=eq_id).count() == 0
    assert HistoricoEntrada.query.filter_by(equipment_id=eq_id).count() == 0
    assert db.session.get(Compra, compra_id).equipment_id is None

    exclusao = HistoricoEntrada.query.filter_by(entity_id=eq_id, change_type='deleted').all()
    assert len(exclusao) == 1
    assert exclusao[0].equipment_id is None
    assert exclusao[0].old_value.startswith('TOP-0001')

    # outros equipamentos não são afetados
    assert db.session.get(Equipamento, outro.id) is not None
    assert len(_entradas(outro.id, 'created')) == 1


def test_excluir_inexistente(service, ator):
    with pytest.raises(NaoEncontrado):
        service.excluir('nao-existe', ator)


def test_atualizar_valor_alem_da_escala_nao_grava(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(value=100), ator)

    for _ in range(2):
        service.atualizar(equipamento.id, {'value': 100.001}, ator)

    assert db.session.get(Equipamento, equipamento.id).value == Decimal('100.00')
    assert _entradas(equipamento.id, 'edited') == []


@pytest.mark.parametrize('dados', [
    {'location': 5, 'responsible': 'João'},
    {'location': 'B', 'responsible': ['Ana']},
])
def test_transferir_com_valor_nao_textual(service, ator, dados_equipamento, dados):
    equipamento = service.criar(dados_equipamento(), ator)
    with pytest.raises(ErroValidacao, match='Campo obrigatório'):
        service.transferir(equipamento.id, dados, ator)


def test_manutencao_com_descricao_nao_textual(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)
    with pytest.raises(ErroValidacao):
        service.registrar_manutencao(equipamento.id, 42, ator)


def test_falha_no_historico_desfaz_a_atualizacao(service, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)

    with mock.patch.object(HistoricoService, 'registrar', side_effect=SQLAlchemyError('falhou')):
        with pytest.raises(ErroPersistencia):
            service.atualizar(equipamento.id, {'brand': 'Dell'}, ator)

    db.session.expire_all()
    assert db.session.get(Equipamento, equipamento.id).brand == 'HP'
    assert _entradas(equipamento.id, 'edited') == []


def test_falha_no_historico_desfaz_a_exclusao(service, storage, ator, dados_equipamento):
    equipamento = service.criar(dados_equipamento(), ator)
    eq_id = equipamento.id
    anexo = service.anexos.enviar(eq_id, 'nota.pdf', b'%PDF-1', 'application/pdf', ator)
    caminho = anexo.file_path

    with mock.patch.object(HistoricoService, 'registrar', side_effect=SQLAlchemyError('falhou')):
        with pytest.raises(ErroPersistencia):
            service.excluir(eq_id, ator)

    db.session.expire_all()
    assert db.session.get(Equipamento, eq_id) is not None
    assert Anexo.query.filter_by(equipment_id=eq_id).count() == 1
    assert storage.existe(caminho)
    assert len(_entradas(eq_id, 'created')) == 1
    assert HistoricoEntrada.query.filter_by(change_type='deleted').count() == 0
