"""
SGP - Cálculo de diferenças para atualizações parciais

Compara o registro armazenado com o payload recebido e produz uma
Alteracao por campo efetivamente modificado. Usado tanto para montar o
UPDATE quanto para gerar uma entrada de histórico por campo.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional, Sequence

from .excecoes import ErroValidacao

TEXTO = 'texto'
NUMERO = 'numero'
DATA = 'data'


@dataclass(frozen=True)
class CampoRastreado:
    """Campo atualizável com seu rótulo de exibição no histórico."""
    coluna: str
    chave: str
    rotulo: str
    tipo: str = TEXTO
    opcional: bool = False
    opcoes: Optional[tuple] = None
    casas: int = 2  # casas decimais da coluna (NUMERO)


@dataclass(frozen=True)
class Alteracao:
    coluna: str
    rotulo: str
    antigo: Any
    novo: Any

    @property
    def texto_antigo(self) -> str:
        return formatar_valor(self.antigo)

    @property
    def texto_novo(self) -> str:
        return formatar_valor(self.novo)


def formatar_valor(valor: Any) -> str:
    """Representação textual gravada em old_value/new_value."""
    if valor is None:
        return ''
    if isinstance(valor, (datetime, date)):
        return valor.isoformat()
    if isinstance(valor, Decimal):
        normalizado = valor.normalize()
        if normalizado == normalizado.to_integral_value():
            return str(normalizado.quantize(Decimal(1)))
        return format(normalizado, 'f')
    return str(valor)


def _coagir(campo: CampoRastreado, valor: Any) -> Any:
    """Converte o valor recebido para o tipo da coluna."""
    if valor is None:
        if not campo.opcional:
            raise ErroValidacao(f'Campo obrigatório: {campo.rotulo}')
        return None

    if campo.tipo == NUMERO:
        if isinstance(valor, bool):
            raise ErroValidacao(f'Valor numérico inválido para {campo.rotulo}')
        try:
            numero = Decimal(str(valor).strip())
        except InvalidOperation:
            raise ErroValidacao(f'Valor numérico inválido para {campo.rotulo}')
        if not numero.is_finite():
            raise ErroValidacao(f'Valor numérico inválido para {campo.rotulo}')
        # mesma escala da coluna: o histórico registra o valor que será gravado
        try:
            return numero.quantize(Decimal(1).scaleb(-campo.casas), rounding=ROUND_HALF_UP)
        except InvalidOperation:
            raise ErroValidacao(f'Valor numérico inválido para {campo.rotulo}')

    if campo.tipo == DATA:
        if isinstance(valor, datetime):
            return valor.date()
        if isinstance(valor, date):
            return valor
        texto = str(valor).strip()
        if not texto:
            if campo.opcional:
                return None
            raise ErroValidacao(f'Campo obrigatório: {campo.rotulo}')
        try:
            # aceita 'YYYY-MM-DD' ou data/hora ISO completa ('2024-01-10T00:00:00.000Z')
            if len(texto) == 10:
                return date.fromisoformat(texto)
            if texto.endswith('Z'):
                texto = texto[:-1] + '+00:00'
            return datetime.fromisoformat(texto).date()
        except ValueError:
            raise ErroValidacao(f'Data inválida para {campo.rotulo}: {valor}')

    texto = valor if isinstance(valor, str) else str(valor)
    if not campo.opcional and not texto.strip():
        raise ErroValidacao(f'Campo obrigatório: {campo.rotulo}')
    if campo.opcoes and texto not in campo.opcoes:
        raise ErroValidacao(
            f"Valor inválido para {campo.rotulo}: {texto}. Use: {', '.join(campo.opcoes)}"
        )
    return texto


def _normalizar(campo: CampoRastreado, valor: Any) -> Any:
    """Forma usada apenas na comparação."""
    if campo.tipo == TEXTO and campo.opcional:
        return valor or ''
    if campo.tipo == NUMERO and valor is not None:
        return Decimal(str(valor))
    if campo.tipo == DATA and isinstance(valor, datetime):
        return valor.date()
    return valor


def calcular_alteracoes(
    atual: Mapping[str, Any],
    patch: Optional[Mapping[str, Any]],
    campos: Sequence[CampoRastreado],
) -> list:
    """
    Lista de alterações entre `atual` (indexado por coluna) e `patch`
    (indexado pela chave da API). Chaves ausentes no patch não geram alteração.
    Função pura: não acessa banco nem modifica os argumentos.
    """
    if not patch:
        return []

    alteracoes = []
    for campo in campos:
        if campo.chave not in patch:
            continue
        novo = _coagir(campo, patch[campo.chave])
        antigo = atual.get(campo.coluna)
        if _normalizar(campo, antigo) == _normalizar(campo, novo):
            continue
        alteracoes.append(Alteracao(campo.coluna, campo.rotulo, antigo, novo))
    return alteracoes


def instantaneo(obj: Any, campos: Iterable[CampoRastreado]) -> dict:
    """Valores atuais de um objeto do modelo, indexados por coluna."""
    return {c.coluna: getattr(obj, c.coluna, None) for c in campos}


def aplicar_alteracoes(obj: Any, alteracoes: Iterable[Alteracao]) -> None:
    for alteracao in alteracoes:
        setattr(obj, alteracao.coluna, alteracao.novo)

