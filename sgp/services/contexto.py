"""
SGP - Contexto das operações de negócio
Autor da alteração (Ator) e unidade de trabalho transacional.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError

from ..models.database import db
from .excecoes import ErroPersistencia

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ator:
    """Quem executa a operação. `origem`: jwt, payload, header ou padrao."""
    nome: str
    origem: str = 'payload'

    def __str__(self):
        return self.nome


@contextmanager
def unidade_de_trabalho(descricao: str):
    """
    Agrupa a escrita da entidade e as entradas de histórico em uma única
    transação: ou tudo é gravado, ou nada é.
    """
    try:
        yield db.session
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Falha ao gravar '{descricao}', transação desfeita: {e}")
        raise ErroPersistencia(f'Erro ao gravar {descricao}: {e}') from e
    except Exception:
        db.session.rollback()
        logger.warning(f"Operação '{descricao}' interrompida, transação desfeita")
        raise
