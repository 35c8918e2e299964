"""
SGP - Envelope padrão das respostas da API
{ success, data?, error?, message? }
"""
import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from ..services.excecoes import ErroSGP

logger = logging.getLogger(__name__)

ERRO_INTERNO = 'Erro interno do servidor'


def sucesso(data=None, message=None, status=200):
    corpo = {'success': True}
    if data is not None:
        corpo['data'] = data
    if message:
        corpo['message'] = message
    return jsonify(corpo), status


def falha(error, status=500):
    return jsonify({'success': False, 'error': error}), status


def registrar_tratadores(app):
    """Converte exceções em respostas no envelope padrão."""

    @app.errorhandler(ErroSGP)
    def tratar_erro_sgp(e):
        if e.status_code >= 500:
            logger.error(f"{type(e).__name__}: {e.mensagem}")
        return falha(e.mensagem, e.status_code)

    @app.errorhandler(RequestEntityTooLarge)
    def tratar_corpo_grande(e):
        return falha('Requisição excede o tamanho máximo permitido', 400)

    @app.errorhandler(HTTPException)
    def tratar_http(e):
        if e.code == 404:
            return falha(f'Rota {request.method} {request.path} não encontrada', 404)
        return falha(e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def tratar_inesperado(e):
        logger.exception(f"Erro não tratado: {e}")
        return falha(ERRO_INTERNO, 500)
