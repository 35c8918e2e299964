from datetime import date

import pytest

from sgp.app import create_app
from sgp.models.database import db
from sgp.services.contexto import Ator


@pytest.fixture
def app(tmp_path):
    app = create_app(
        'testing',
        SQLALCHEMY_DATABASE_URI='sqlite://',
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def storage(app):
    return app.extensions['storage']


@pytest.fixture
def ator():
    return Ator('Maria')


@pytest.fixture
def dados_equipamento():
    def _dados(**extra):
        dados = {
            'description': 'Notebook',
            'brand': 'HP',
            'model': 'ProBook 440',
            'location': 'A',
            'responsible': 'João',
            'acquisitionDate': date(2024, 3, 1).isoformat(),
            'value': 4500.5,
        }
        dados.update(extra)
        return dados
    return _dados
