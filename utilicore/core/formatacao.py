"""
Formatação de valores para exibição no painel.

Moeda sempre no padrão brasileiro (R$, vírgula decimal, ponto de milhar),
independentemente do locale do servidor. Os arredondamentos são meio para
cima, aplicados antes de delegar a formatação ao Babel.
"""

import re
from contextlib import contextmanager
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any, Iterator, Optional, Sequence

from babel.dates import format_date
from babel.numbers import format_currency, format_decimal

from .models.registro_consumo import TipoUtilidade, como_data, como_float

LOCALE = "pt_BR"
MOEDA = "BRL"

TIPOS_ESCOLA_PADRAO = ("EMEF", "EMEI", "EMEIF", "COMP", "PAR")


def _quantizar(valor: Any, casas: int) -> Decimal:
    """Decimal arredondado meio para cima; valores inválidos valem 0."""
    quantia = Decimal(str(como_float(valor))).quantize(Decimal(1).scaleb(-casas), rounding=ROUND_HALF_UP)
    # Evita "-0,00"
    return quantia if quantia != 0 else abs(quantia)


@contextmanager
def _precisao_para(valor: Any, casas: int) -> Iterator[None]:
    """
    Contexto decimal com dígitos suficientes para `valor` com `casas` decimais.

    A precisão padrão (28 dígitos) não comporta valores a partir de ~1e26 com
    duas casas; tanto o arredondamento quanto o Babel rodam neste contexto.
    """
    digitos = Decimal(str(como_float(valor))).adjusted() + 1
    with localcontext() as contexto:
        contexto.prec = max(contexto.prec, digitos + casas + 1)
        yield


def _padrao(casas: int) -> str:
    return "#,##0." + "0" * casas if casas > 0 else "#,##0"


def formatar_numero(valor: Any, casas: int = 0) -> str:
    """
    Número com separadores brasileiros.

    Example:
        >>> formatar_numero(1234.56, 1)
        '1.234,6'
    """
    with _precisao_para(valor, casas):
        return format_decimal(_quantizar(valor, casas), format=_padrao(casas), locale=LOCALE)


def formatar_moeda(valor: Any, casas: int = 2) -> str:
    """
    Valor em reais.

    None, texto não numérico, NaN e infinito são exibidos como zero.

    Args:
        valor: Valor a formatar
        casas: Casas decimais (0 para valores inteiros nos gráficos)

    Returns:
        Texto no formato "R$ 1.234,56" ("-R$ 1,00" para negativos)

    Example:
        >>> formatar_moeda(1234.5)
        'R$ 1.234,50'
        >>> formatar_moeda(None)
        'R$ 0,00'
    """
    with _precisao_para(valor, casas):
        texto = format_currency(
            _quantizar(valor, casas),
            MOEDA,
            format="¤ " + _padrao(casas),
            currency_digits=False,
            locale=LOCALE,
        )
    return texto.replace("\xa0", " ")


def formatar_consumo(valor: Any, tipo: TipoUtilidade, casas: int = 1) -> str:
    """
    Consumo com a unidade do tipo de utilidade.

    Example:
        >>> formatar_consumo(1234.5, TipoUtilidade.AGUA)
        '1.234,5 m³'
    """
    return f"{formatar_numero(valor, casas)} {TipoUtilidade(tipo).unidade}"


def formatar_percentual(valor: Any, casas: int = 1, sinal: bool = False) -> str:
    """
    Percentual ("12,5%"). Com `sinal=True`, valores positivos recebem "+".

    Example:
        >>> formatar_percentual(12.345, sinal=True)
        '+12,3%'
    """
    with _precisao_para(valor, casas):
        quantia = _quantizar(valor, casas)
        numero = format_decimal(quantia, format=_padrao(casas), locale=LOCALE)
    prefixo = "+" if sinal and quantia > 0 else ""
    return f"{prefixo}{numero}%"


def formatar_data(valor: Any) -> str:
    """
    Data no formato DD/MM/YYYY.

    Aceita date, datetime ou texto ISO; qualquer outra coisa resulta em "".

    Example:
        >>> formatar_data("2025-03-20")
        '20/03/2025'
    """
    data = como_data(valor)
    if data is None:
        return ""
    return format_date(data, "dd/MM/yyyy", locale=LOCALE)


# =============================================================================
# CAMPO DE MOEDA
# =============================================================================

def interpretar_moeda(texto: Any) -> float:
    """
    Valor numérico de um texto em reais ("R$ 1.234,56" -> 1234.56).

    Texto inválido vale 0.
    """
    if not isinstance(texto, str):
        return como_float(texto)
    numeros = re.sub(r"[R$\s]", "", texto).replace(".", "").replace(",", ".", 1)
    return como_float(numeros)


def mascarar_moeda(texto: Optional[str]) -> str:
    """
    Máscara do campo de moeda: os dígitos digitados são centavos.

    Example:
        >>> mascarar_moeda("123456")
        'R$ 1.234,56'
        >>> mascarar_moeda("")
        'R$ 0,00'
    """
    digitos = re.sub(r"\D", "", texto or "")
    centavos = int(digitos) if digitos else 0
    return formatar_moeda(Decimal(centavos) / 100)


# =============================================================================
# RÓTULOS
# =============================================================================

def nome_curto(nome: Optional[str], tamanho: int = 20, tipos: Optional[Sequence[str]] = None) -> str:
    """
    Nome da escola sem o prefixo de tipo, truncado para eixos de gráfico.

    Example:
        >>> nome_curto("EMEF Professora Maria da Silva Santos")
        'Professora Maria da '
    """
    tipos = tipos or TIPOS_ESCOLA_PADRAO
    prefixos = "|".join(re.escape(tipo) for tipo in tipos)
    return re.sub(rf"^({prefixos})\s+", "", nome or "Escola")[:tamanho]
