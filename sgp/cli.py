"""
SGP - Comandos de linha de comando (flask sgp ...)
"""
import click
from flask import current_app
from flask.cli import AppGroup

from .models.database import db
from .services.historico_service import HistoricoService
from .services.patrimonio import NumeracaoPatrimonio

sgp_cli = AppGroup('sgp', help='Comandos de manutenção do SGP.')


@sgp_cli.command('init-db')
def init_db():
    """Cria as tabelas do banco."""
    db.create_all()
    click.echo('Tabelas criadas.')


@sgp_cli.command('next-asset-number')
def next_asset_number():
    """Mostra o próximo número de patrimônio disponível."""
    numeracao = NumeracaoPatrimonio(current_app.config.get('ASSET_NUMBER_PREFIX', 'TOP'))
    click.echo(numeracao.proximo_numero())


@sgp_cli.command('history')
@click.option('--limit', default=None, type=int, help='Quantidade de entradas (padrão 10).')
def history(limit):
    """Lista as entradas mais recentes do histórico."""
    for entrada in HistoricoService(current_app.config).recentes(limit):
        click.echo(
            f"{entrada.timestamp:%Y-%m-%d %H:%M:%S}  {entrada.user_name:<20} "
            f"{entrada.entity_type}/{entrada.change_type}  "
            f"{entrada.field or '-'}: {entrada.old_value or ''} -> {entrada.new_value or ''}"
        )
