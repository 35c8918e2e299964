"""
SGP - Numeração de patrimônio
Gera e valida etiquetas no formato PREFIXO-NNNN (ex.: TOP-0042).

A busca do maior número usa a ordenação textual da coluna, que só é
numericamente correta enquanto o sufixo tiver exatamente 4 dígitos.
Por isso toda etiqueta é validada com 4 dígitos antes de gravar e a
sequência se esgota em PREFIXO-9999.
"""
import logging
import re
from typing import Optional

from sqlalchemy import func

from ..models.database import Equipamento
from .excecoes import ErroValidacao

logger = logging.getLogger(__name__)

DIGITOS = 4
MAXIMO = 10 ** DIGITOS - 1


class NumeracaoPatrimonio:
    """Geração e validação dos números de patrimônio."""

    def __init__(self, prefixo: str = 'TOP'):
        self.prefixo = prefixo.upper()
        self._padrao_sufixo = re.compile(rf'^{re.escape(self.prefixo)}-(\d+)$')
        self._padrao_exato = re.compile(rf'^{re.escape(self.prefixo)}-\d{{{DIGITOS}}}$')

    def formatar(self, numero: int) -> str:
        return f'{self.prefixo}-{numero:0{DIGITOS}d}'

    @staticmethod
    def normalizar(numero: str) -> str:
        """Remove espaços, troca travessão por hífen e converte para maiúsculas."""
        if not isinstance(numero, str):
            return ''
        return re.sub(r'\s+', '', numero).replace('–', '-').upper()

    def proximo_numero(self) -> str:
        """Próxima etiqueta a partir da maior existente."""
        ultimo = (
            Equipamento.query
            .with_entities(Equipamento.asset_number)
            .order_by(Equipamento.asset_number.desc())
            .limit(1)
            .scalar()
        )
        if not ultimo:
            return self.formatar(1)

        match = self._padrao_sufixo.match(ultimo)
        if not match:
            logger.warning(f"Maior patrimônio fora do padrão ({ultimo}), reiniciando sequência")
            return self.formatar(1)

        proximo = int(match.group(1)) + 1
        if proximo > MAXIMO:
            raise ErroValidacao(
                f'Sequência de patrimônio esgotada ({self.formatar(MAXIMO)})'
            )
        return self.formatar(proximo)

    def validar_formato(self, numero: str) -> str:
        normalizado = self.normalizar(numero)
        if not self._padrao_exato.match(normalizado):
            raise ErroValidacao(f'Formato inválido. Use {self.prefixo}-0000')
        return normalizado

    def validar_numero(self, numero: str, excluir_id: Optional[str] = None) -> str:
        """
        Valida formato e unicidade. Retorna o número normalizado.
        A comparação ignora maiúsculas e espaços das etiquetas gravadas.
        """
        normalizado = self.validar_formato(numero)

        coluna = func.upper(func.replace(Equipamento.asset_number, ' ', ''))
        query = Equipamento.query.filter(coluna == normalizado)
        if excluir_id:
            query = query.filter(Equipamento.id != excluir_id)

        if query.first() is not None:
            raise ErroValidacao('Este número de patrimônio já está em uso')
        return normalizado
