"""
Agregação dos registros de consumo em linhas de resumo.

Uma linha de resumo por valor distinto da chave de agrupamento (escola,
empresa, estação...), calculada em duas etapas:

1. acumulação dos totais e da contagem de registros por chave
2. cálculo das médias e do índice de eficiência a partir dos totais

Os totais nunca são arredondados; o arredondamento de exibição é uma etapa
separada (arredondar_para_exibicao), o que mantém a agregação idempotente.
"""

import logging
import math
from typing import Optional, Sequence, Union

import polars as pl
import pandera.polars as pa
from pandera.typing.polars import DataFrame

from ...config import carregar_parametros
from ..models.resumo_consumo import COLUNAS_RESUMO, ResumoConsumo
from ..periodos import expr_filtrar_mes

logger = logging.getLogger(__name__)

Registros = Union[pl.LazyFrame, pl.DataFrame]

COLUNAS_CONSUMO = ["consumo_total", "consumo_medio", "indice_eficiencia"]
COLUNAS_MOEDA = ["valor_total", "valor_servicos_total", "valor_medio"]


# =============================================================================
# EXPRESSÕES
# =============================================================================

def expr_valor_numerico(col: str) -> pl.Expr:
    """
    Valor numérico de uma coluna, com ausentes, texto, NaN e infinitos valendo 0.

    Example:
        >>> df.select(expr_valor_numerico("consumo").sum())
    """
    valor = pl.col(col).cast(pl.Float64, strict=False)
    return pl.when(valor.is_finite()).then(valor).otherwise(0.0)


def expr_media(total: str) -> pl.Expr:
    """Média total / quantidade_registros (0 quando não há registros)."""
    return (
        pl.when(pl.col("quantidade_registros") > 0)
        .then(pl.col(total) / pl.col("quantidade_registros"))
        .otherwise(0.0)
    )


def expr_indice_eficiencia() -> pl.Expr:
    """
    Consumo por R$ 1.000 gastos.

    consumo_medio / valor_medio * 1000 quando valor_medio > 0, senão 0.
    """
    return (
        pl.when(pl.col("valor_medio") > 0)
        .then(pl.col("consumo_medio") / pl.col("valor_medio") * 1000)
        .otherwise(0.0)
    )


def expr_arredondar(col: Union[str, pl.Expr], casas: int) -> pl.Expr:
    """Arredondamento meio para cima (2,5 -> 3 ; -2,5 -> -2)."""
    valor = pl.col(col) if isinstance(col, str) else col
    fator = 10 ** casas
    return (valor * fator + 0.5).floor() / fator


def arredondar(valor: float, casas: int = 0) -> float:
    """
    Versão escalar de expr_arredondar.

    Example:
        >>> arredondar(0.25, 1), arredondar(2.5)
        (0.3, 3.0)
    """
    fator = 10 ** casas
    return math.floor(valor * fator + 0.5) / fator


# =============================================================================
# AGREGAÇÃO
# =============================================================================

@pa.check_types
def agregar_por(
    registros: Registros,
    chave: Union[str, pl.Expr] = "nome_escola",
    extras: Sequence[pl.Expr] = (),
) -> DataFrame[ResumoConsumo]:
    """
    Agrega os registros por chave.

    Somente chaves com pelo menos um registro aparecem no resultado, na
    ordem da primeira ocorrência de cada chave nos registros.

    Args:
        registros: Registros no formato RegistroConsumoPolars
        chave: Nome de coluna ou expressão que calcula a chave de agrupamento
        extras: Agregações adicionais, calculadas por grupo e colocadas após
            as colunas do resumo

    Returns:
        DataFrame validado por ResumoConsumo

    Example:
        >>> agregar_por(registros, "nome_escola")
        >>> agregar_por(registros, pl.col("nome_escola").str.split(" ").list.first())
    """
    expr_chave = pl.col(chave) if isinstance(chave, str) else chave

    resumo = (
        registros.lazy()
        # Etapa 1: acumulação
        .group_by(expr_chave.cast(pl.Utf8).alias("chave"), maintain_order=True)
        .agg([
            expr_valor_numerico("consumo").sum().alias("consumo_total"),
            expr_valor_numerico("valor_gasto").sum().alias("valor_total"),
            expr_valor_numerico("valor_servicos").sum().alias("valor_servicos_total"),
            pl.len().cast(pl.Int64).alias("quantidade_registros"),
            *extras,
        ])

        # Etapa 2: médias e eficiência
        .with_columns([
            expr_media("consumo_total").alias("consumo_medio"),
            expr_media("valor_total").alias("valor_medio"),
        ])
        .with_columns(expr_indice_eficiencia().alias("indice_eficiencia"))

        .select([*COLUNAS_RESUMO, pl.exclude(COLUNAS_RESUMO)])
        .collect()
    )
    logger.debug(f"{resumo.height} linhas de resumo a partir dos registros")
    return resumo


def agregar_por_escola(registros: Registros, mes: Optional[str] = None) -> pl.DataFrame:
    """
    Resumo por escola, opcionalmente restrito a um mês.

    Além das colunas do resumo, traz a lista dos cadastros da escola.

    Args:
        registros: Registros no formato RegistroConsumoPolars
        mes: "dezembro" (qualquer ano), "Dezembro/2025" (mês exato) ou None

    Example:
        >>> agregar_por_escola(registros, "Dezembro/2025")
    """
    filtrados = registros.lazy().filter(expr_filtrar_mes(mes))
    return agregar_por(
        filtrados,
        "nome_escola",
        extras=[pl.col("cadastro").drop_nulls().unique(maintain_order=True).alias("cadastros")],
    )


def arredondar_para_exibicao(resumo: pl.DataFrame) -> pl.DataFrame:
    """
    Arredonda um resumo para exibição: consumo com 1 casa, moeda em reais inteiros.

    Apenas as colunas presentes são arredondadas.
    """
    return resumo.with_columns(
        [expr_arredondar(col, 1) for col in COLUNAS_CONSUMO if col in resumo.columns]
        + [expr_arredondar(col, 0) for col in COLUNAS_MOEDA if col in resumo.columns]
    )


# =============================================================================
# CLASSIFICAÇÃO
# =============================================================================

def classificar(resumo: pl.DataFrame, campo: str, descendente: bool = True) -> pl.DataFrame:
    """
    Ordenação estável por um campo numérico.

    Empates mantêm a ordem de entrada.

    Raises:
        KeyError: se o campo não existir no resumo
    """
    if campo not in resumo.columns:
        raise KeyError(f"Campo de classificação desconhecido: {campo}")
    return resumo.sort(campo, descending=descendente, nulls_last=True, maintain_order=True)


def primeiros(resumo: pl.DataFrame, campo: str, n: int) -> pl.DataFrame:
    """Os n primeiros da classificação decrescente por campo."""
    return classificar(resumo, campo).head(n)


def ultimos(resumo: pl.DataFrame, campo: str, n: int) -> pl.DataFrame:
    """Os n últimos da classificação decrescente por campo, na mesma ordem."""
    return classificar(resumo, campo).tail(n)


def comparativo_escolas(
    resumo: pl.DataFrame,
    selecionadas: Optional[Sequence[str]] = None,
    n: Optional[int] = None,
) -> pl.DataFrame:
    """
    Escolas do gráfico comparativo.

    Com uma seleção, as escolas selecionadas na ordem do resumo; sem ela,
    as n escolas de maior valor total.

    Returns:
        Resumo das escolas com a coluna valor_consumo (valor sem os serviços)
    """
    if selecionadas:
        escolhidas = resumo.filter(pl.col("chave").is_in(list(selecionadas)))
    else:
        if n is None:
            n = carregar_parametros()["rankings"]["comparativo"]
        escolhidas = primeiros(resumo, "valor_total", n)

    return escolhidas.with_columns(
        (pl.col("valor_total") - pl.col("valor_servicos_total")).alias("valor_consumo")
    )
