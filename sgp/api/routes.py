"""
SGP - Rotas da API REST
"""
from datetime import datetime, timezone

from flask import Blueprint, request, current_app

from ..services.compra_service import CompraService
from ..services.equipamento_service import EquipamentoService
from ..services.excecoes import ErroValidacao
from ..services.historico_service import HistoricoService
from ..services.termo_service import TermoService
from .identidade import ator_atual
from .respostas import sucesso

api_bp = Blueprint('api', __name__)


def _storage():
    return current_app.extensions['storage']


def _equipamentos():
    return EquipamentoService(current_app.config, _storage())


def _compras():
    return CompraService(current_app.config, _storage())


def _termos():
    return TermoService(current_app.config, _storage())


def _historico():
    return HistoricoService(current_app.config)


def _corpo():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ============================================================
# HEALTH
# ============================================================

@api_bp.route('/health', methods=['GET'])
def health():
    return sucesso(
        message='API is running',
        data={'timestamp': datetime.now(timezone.utc).isoformat()},
    )


# ============================================================
# EQUIPAMENTOS
# ============================================================

@api_bp.route('/equipment', methods=['GET'])
def listar_equipamentos():
    """Lista equipamentos (mais recentes primeiro), com filtros opcionais"""
    equipamentos = _equipamentos().listar(
        status=request.args.get('status'),
        busca=request.args.get('search'),
    )
    return sucesso([e.to_dict() for e in equipamentos])


@api_bp.route('/equipment/stats', methods=['GET'])
def estatisticas_equipamentos():
    return sucesso(_equipamentos().estatisticas())


@api_bp.route('/equipment/next-asset-number', methods=['GET'])
def proximo_numero_patrimonio():
    return sucesso({'assetNumber': _equipamentos().proximo_numero()})


@api_bp.route('/equipment/validate-asset-number', methods=['GET'])
def validar_numero_patrimonio():
    """Valida formato e unicidade: ?assetNumber=TOP-0001&excludeId=<id>"""
    numero = request.args.get('assetNumber')
    if not numero:
        raise ErroValidacao('Informe o assetNumber')
    resultado = _equipamentos().validar_numero(numero, excluir_id=request.args.get('excludeId'))
    return sucesso(resultado)


@api_bp.route('/equipment/<equipamento_id>', methods=['GET'])
def obter_equipamento(equipamento_id):
    """Detalhes do equipamento com anexos"""
    return sucesso(_equipamentos().detalhar(equipamento_id))


@api_bp.route('/equipment', methods=['POST'])
def criar_equipamento():
    equipamento = _equipamentos().criar(_corpo(), ator_atual())
    return sucesso(equipamento.to_dict(), 'Equipment created successfully', 201)


@api_bp.route('/equipment/<equipamento_id>', methods=['PUT'])
def atualizar_equipamento(equipamento_id):
    equipamento = _equipamentos().atualizar(equipamento_id, _corpo(), ator_atual())
    return sucesso(equipamento.to_dict(), 'Equipment updated successfully')


@api_bp.route('/equipment/<equipamento_id>', methods=['DELETE'])
def excluir_equipamento(equipamento_id):
    _equipamentos().excluir(equipamento_id, ator_atual())
    return sucesso(message='Equipment deleted successfully')


@api_bp.route('/equipment/<equipamento_id>/transfer', methods=['POST'])
def transferir_equipamento(equipamento_id):
    equipamento = _equipamentos().transferir(equipamento_id, _corpo(), ator_atual())
    return sucesso(equipamento.to_dict(), 'Equipment transferred successfully')


@api_bp.route('/equipment/<equipamento_id>/maintenance', methods=['POST'])
def registrar_manutencao(equipamento_id):
    equipamento = _equipamentos().registrar_manutencao(
        equipamento_id, _corpo().get('description'), ator_atual()
    )
    return sucesso(equipamento.to_dict(), 'Maintenance registered successfully')


@api_bp.route('/equipment/<equipamento_id>/history', methods=['GET'])
def historico_equipamento(equipamento_id):
    entradas = _equipamentos().historico_do_equipamento(equipamento_id)
    return sucesso([h.to_dict() for h in entradas])


# ============================================================
# ANEXOS
# ============================================================

@api_bp.route('/equipment/<equipamento_id>/attachments', methods=['GET'])
def listar_anexos(equipamento_id):
    service = _equipamentos().anexos
    return sucesso([service.para_api(a) for a in service.listar(equipamento_id)])


@api_bp.route('/equipment/<equipamento_id>/attachments', methods=['POST'])
def enviar_anexo(equipamento_id):
    """Upload multipart, campo 'file'"""
    arquivo = request.files.get('file')
    if arquivo is None or not arquivo.filename:
        raise ErroValidacao('No file provided')

    service = _equipamentos().anexos
    anexo = service.enviar(
        equipamento_id,
        arquivo.filename,
        arquivo.read(),
        arquivo.mimetype,
        ator_atual(),
    )
    return sucesso(service.para_api(anexo), 'Attachment uploaded successfully', 201)


@api_bp.route('/equipment/attachments/<anexo_id>', methods=['DELETE'])
def excluir_anexo(anexo_id):
    _equipamentos().anexos.remover(anexo_id, ator_atual())
    return sucesso(message='Attachment deleted successfully')


# ============================================================
# COMPRAS
# ============================================================

@api_bp.route('/purchases', methods=['GET'])
def listar_compras():
    compras = _compras().listar(
        status=request.args.get('status'),
        urgencia=request.args.get('urgency'),
    )
    return sucesso([c.to_dict() for c in compras])


@api_bp.route('/purchases/stats', methods=['GET'])
def estatisticas_compras():
    return sucesso(_compras().estatisticas())


@api_bp.route('/purchases/<compra_id>', methods=['GET'])
def obter_compra(compra_id):
    return sucesso(_compras().obter(compra_id).to_dict())


@api_bp.route('/purchases', methods=['POST'])
def criar_compra():
    compra = _compras().criar(_corpo(), ator_atual())
    return sucesso(compra.to_dict(), 'Purchase request created successfully', 201)


@api_bp.route('/purchases/<compra_id>', methods=['PUT'])
def atualizar_compra(compra_id):
    compra = _compras().atualizar(compra_id, _corpo(), ator_atual())
    return sucesso(compra.to_dict(), 'Purchase request updated successfully')


@api_bp.route('/purchases/<compra_id>', methods=['DELETE'])
def excluir_compra(compra_id):
    _compras().excluir(compra_id, ator_atual())
    return sucesso(message='Purchase request deleted successfully')


@api_bp.route('/purchases/<compra_id>/approve', methods=['POST'])
def aprovar_compra(compra_id):
    compra = _compras().aprovar(compra_id, ator_atual())
    return sucesso(compra.to_dict(), 'Purchase request approved successfully')


@api_bp.route('/purchases/<compra_id>/reject', methods=['POST'])
def rejeitar_compra(compra_id):
    """Corpo: { reason, userName }"""
    compra = _compras().rejeitar(compra_id, _corpo().get('reason'), ator_atual())
    return sucesso(compra.to_dict(), 'Purchase request rejected')


@api_bp.route('/purchases/<compra_id>/acquire', methods=['POST'])
def adquirir_compra(compra_id):
    compra = _compras().marcar_adquirida(compra_id, ator_atual())
    return sucesso(compra.to_dict(), 'Purchase marked as acquired')


@api_bp.route('/purchases/<compra_id>/convert-to-equipment', methods=['POST'])
def converter_compra(compra_id):
    """
    Cria um equipamento a partir da compra e marca a compra como adquirida.
    Campos enviados no corpo sobrepõem os dados da compra.
    """
    equipamento = _compras().converter_em_equipamento(compra_id, _corpo(), ator_atual())
    return sucesso(equipamento.to_dict(), 'Purchase converted to equipment successfully', 201)


# ============================================================
# TERMOS DE RESPONSABILIDADE
# ============================================================

@api_bp.route('/responsibility-terms/equipment/<equipamento_id>', methods=['GET'])
def listar_termos(equipamento_id):
    termos = _termos().listar_por_equipamento(equipamento_id)
    return sucesso([t.to_dict() for t in termos])


@api_bp.route('/responsibility-terms/<termo_id>', methods=['GET'])
def obter_termo(termo_id):
    return sucesso(_termos().obter(termo_id).to_dict())


@api_bp.route('/responsibility-terms', methods=['POST'])
def criar_termo():
    """Corpo com pdfBase64 opcional (PDF gerado no frontend)"""
    termo = _termos().criar(_corpo(), ator_atual())
    return sucesso(termo.to_dict(), 'Responsibility term created successfully', 201)


@api_bp.route('/responsibility-terms/<termo_id>/status', methods=['PATCH'])
def atualizar_status_termo(termo_id):
    termo = _termos().atualizar_status(termo_id, _corpo().get('status'), ator_atual())
    return sucesso(termo.to_dict(), 'Term status updated successfully')


@api_bp.route('/responsibility-terms/<termo_id>', methods=['DELETE'])
def excluir_termo(termo_id):
    _termos().excluir(termo_id, ator_atual())
    return sucesso(message='Responsibility term deleted successfully')


# ============================================================
# HISTÓRICO
# ============================================================

@api_bp.route('/history', methods=['GET'])
def listar_historico():
    return sucesso([h.to_dict() for h in _historico().listar()])


@api_bp.route('/history/recent', methods=['GET'])
def historico_recente():
    entradas = _historico().recentes(request.args.get('limit'))
    return sucesso([h.to_dict() for h in entradas])


@api_bp.route('/history/equipment/<equipamento_id>', methods=['GET'])
def historico_por_equipamento(equipamento_id):
    return sucesso([h.to_dict() for h in _historico().por_equipamento(equipamento_id)])


@api_bp.route('/history/entity/<entidade_tipo>', methods=['GET'])
def historico_por_entidade(entidade_tipo):
    return sucesso([h.to_dict() for h in _historico().por_tipo_entidade(entidade_tipo)])


@api_bp.route('/history', methods=['POST'])
def criar_historico():
    entrada = _historico().criar(_corpo(), ator_atual())
    return sucesso(entrada.to_dict(), 'History entry created successfully', 201)
