"""
SGP - Identificação do autor das alterações
Não há autenticação própria: o nome vem de um JWT (se enviado) ou do
campo userName da requisição.
"""
import logging

from flask import current_app, request
from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request
from flask_jwt_extended.exceptions import JWTExtendedException
from jwt.exceptions import PyJWTError

from ..services.contexto import Ator
from ..services.excecoes import ErroValidacao

logger = logging.getLogger(__name__)


def _nome_do_token():
    try:
        verify_jwt_in_request(optional=True)
    except (JWTExtendedException, PyJWTError) as e:
        logger.warning(f"Token inválido em {request.path}: {e}")
        raise ErroValidacao('Token de acesso inválido')
    claims = get_jwt()
    if not claims:
        return None
    return claims.get('nome') or get_jwt_identity()


def _nome_da_requisicao():
    """(nome, origem) informados na requisição; nome é None quando ausente."""
    corpo = request.get_json(silent=True)
    if isinstance(corpo, dict) and corpo.get('userName'):
        return corpo['userName'], 'payload'
    nome = request.form.get('userName') or request.args.get('userName')
    if nome:
        return nome, 'payload'
    return request.headers.get('X-User-Name'), 'header'


def ator_atual() -> Ator:
    """Autor da requisição atual, na ordem: JWT, userName, X-User-Name, padrão."""
    nome = _nome_do_token()
    if nome:
        return Ator(str(nome), 'jwt')

    nome, origem = _nome_da_requisicao()
    if nome and str(nome).strip():
        return Ator(str(nome).strip(), origem)

    return Ator(current_app.config.get('DEFAULT_USER_NAME', 'Sistema'), 'padrao')
