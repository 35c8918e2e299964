"""
SGP - Sistema de Gestão de Patrimônio
Aplicação principal Flask
"""
import logging
import os

from dotenv import load_dotenv
from flask import Flask, request
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate

from .models.database import db
from .config.settings import config_map
from .services.storage import criar_storage

logger = logging.getLogger(__name__)


def create_app(config_name=None, **overrides):
    """Factory para criação da aplicação Flask."""
    load_dotenv()
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config_map.get(config_name, config_map['default']))
    app.config.update(overrides)

    _init_logging(app)

    # Extensões
    db.init_app(app)
    CORS(
        app,
        resources={r"/api/*": {"origins": app.config['FRONTEND_URL']}},
        supports_credentials=True,
    )
    JWTManager(app)
    Migrate(app, db)

    # Storage de arquivos (anexos e PDFs dos termos)
    app.extensions['storage'] = criar_storage(app.config)

    @app.before_request
    def log_request():
        logger.info(f"{request.method} {request.path}")

    # Registrar blueprints (rotas da API)
    from .api.routes import api_bp
    app.register_blueprint(api_bp, url_prefix='/api')

    from .api.respostas import registrar_tratadores
    registrar_tratadores(app)

    from .cli import sgp_cli
    app.cli.add_command(sgp_cli)

    @app.route('/')
    def index():
        return {
            'success': True,
            'message': 'Gestão de Patrimônio API',
            'version': '1.0.0',
            'endpoints': {
                'health': '/api/health',
                'equipment': '/api/equipment',
                'purchases': '/api/purchases',
                'responsibilityTerms': '/api/responsibility-terms',
                'history': '/api/history',
            },
        }

    @app.route('/health')
    def health():
        return {'status': 'ok', 'service': 'SGP - Sistema de Gestão de Patrimônio'}

    return app


def _init_logging(app):
    """Nível de log global a partir de LOG_LEVEL."""
    nivel = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=nivel,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    logging.getLogger().setLevel(nivel)
    app.logger.setLevel(nivel)
