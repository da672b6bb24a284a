"""
Indicadores do painel calculados a partir dos registros de consumo.

- totais mensais e tendência de custos
- alertas de variação de consumo entre dois meses
- distribuição por tipo de escola
- próximos vencimentos
- métricas de eficiência
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

import polars as pl

from ...config import carregar_parametros
from ..periodos import expr_data_referencia, expr_filtrar_mes, expr_rotulo_mes
from .agregacao import (
    Registros,
    agregar_por,
    classificar,
    expr_arredondar,
    expr_valor_numerico,
)

logger = logging.getLogger(__name__)


# =============================================================================
# TOTAIS MENSAIS E TENDÊNCIA
# =============================================================================

def totais_mensais(registros: Registros) -> pl.DataFrame:
    """
    Totais por mês de referência, em ordem cronológica.

    Registros com mês de referência inválido são ignorados.

    Returns:
        DataFrame com ano, mes, rotulo ("Mar/2025"), consumo_total,
        valor_total, valor_servicos_total, quantidade_registros e
        quantidade_escolas (escolas distintas no mês)
    """
    return (
        registros.lazy()
        .with_columns(expr_data_referencia().alias("data_referencia"))
        .filter(pl.col("data_referencia").is_not_null())
        .group_by("data_referencia")
        .agg([
            expr_valor_numerico("consumo").sum().alias("consumo_total"),
            expr_valor_numerico("valor_gasto").sum().alias("valor_total"),
            expr_valor_numerico("valor_servicos").sum().alias("valor_servicos_total"),
            pl.len().cast(pl.Int64).alias("quantidade_registros"),
            pl.col("nome_escola").n_unique().cast(pl.Int64).alias("quantidade_escolas"),
        ])
        .sort("data_referencia")
        .select([
            pl.col("data_referencia").dt.year().cast(pl.Int64).alias("ano"),
            pl.col("data_referencia").dt.month().cast(pl.Int64).alias("mes"),
            expr_rotulo_mes("data_referencia").alias("rotulo"),
            "consumo_total",
            "valor_total",
            "valor_servicos_total",
            "quantidade_registros",
            "quantidade_escolas",
        ])
        .collect()
    )


def tendencia_custos(totais: pl.DataFrame) -> pl.DataFrame:
    """
    Tendência de custos a partir dos totais mensais.

    Adiciona:
    - media_movel: média dos 3 últimos meses (os dois primeiros meses
      mantêm o próprio valor)
    - variacao: diferença para o mês anterior (0 no primeiro mês)
    - tendencia_percentual: variação em %, com 2 casas (0 quando o mês
      anterior vale 0)

    Example:
        >>> tendencia_custos(totais_mensais(registros))
    """
    valor = pl.col("valor_total")
    anterior = valor.shift(1)

    return totais.with_columns([
        pl.when(pl.int_range(pl.len()) >= 2)
        .then(valor.rolling_mean(window_size=3))
        .otherwise(valor)
        .alias("media_movel"),

        (valor - anterior).fill_null(0.0).alias("variacao"),

        pl.when(anterior.is_not_null() & (anterior != 0))
        .then(expr_arredondar((valor - anterior) / anterior * 100, 2))
        .otherwise(0.0)
        .alias("tendencia_percentual"),
    ])


# =============================================================================
# ALERTAS
# =============================================================================

def alertas_variacao(
    registros: Registros,
    mes_atual: str,
    mes_anterior: str,
    limiar_percentual: Optional[float] = None,
) -> pl.DataFrame:
    """
    Escolas cujo consumo variou pelo menos `limiar_percentual` % entre dois meses.

    Escolas sem consumo no mês anterior são ignoradas.

    Args:
        registros: Registros no formato RegistroConsumoPolars
        mes_atual: Mês comparado ("dezembro" ou "Dezembro/2025")
        mes_anterior: Mês de referência da comparação
        limiar_percentual: Variação mínima em valor absoluto (padrão em
            parametros.yaml)

    Returns:
        DataFrame com nome_escola, consumo_atual, consumo_anterior,
        variacao_percentual (2 casas) e tipo ("aumento" ou "reducao"),
        na ordem das escolas no mês atual

    Example:
        >>> alertas_variacao(registros, "dezembro", "novembro")
    """
    if limiar_percentual is None:
        limiar_percentual = carregar_parametros()["alertas"]["limiar_percentual"]

    atual = agregar_por(registros.lazy().filter(expr_filtrar_mes(mes_atual)), "nome_escola")
    anterior = agregar_por(registros.lazy().filter(expr_filtrar_mes(mes_anterior)), "nome_escola")

    variacao = (pl.col("consumo_atual") - pl.col("consumo_anterior")) / pl.col("consumo_anterior") * 100

    alertas = (
        atual
        .select([pl.col("chave").alias("nome_escola"), pl.col("consumo_total").alias("consumo_atual")])
        .with_row_index("_ordem")
        .join(
            anterior.select([pl.col("chave").alias("nome_escola"), pl.col("consumo_total").alias("consumo_anterior")]),
            on="nome_escola",
            how="inner",
        )
        .filter(pl.col("consumo_anterior") > 0)
        .with_columns(variacao.alias("_variacao"))
        .filter(pl.col("_variacao").abs() >= limiar_percentual)
        .sort("_ordem")
        .select([
            "nome_escola",
            "consumo_atual",
            "consumo_anterior",
            expr_arredondar("_variacao", 2).alias("variacao_percentual"),
            pl.when(pl.col("_variacao") > 0)
            .then(pl.lit("aumento"))
            .otherwise(pl.lit("reducao"))
            .alias("tipo"),
        ])
    )
    logger.debug(f"{alertas.height} alertas de variação ({mes_atual} vs {mes_anterior})")
    return alertas


# =============================================================================
# DISTRIBUIÇÃO POR TIPO DE ESCOLA
# =============================================================================

def expr_tipo_escola(col: str = "chave") -> pl.Expr:
    """Tipo da escola: primeira palavra do nome, em maiúsculas ("EMEF")."""
    return pl.col(col).str.strip_chars().str.split(" ").list.first().str.to_uppercase()


def distribuicao_por_tipo_escola(
    registros: Registros,
    tipos: Optional[Sequence[str]] = None,
    mes: Optional[str] = None,
) -> pl.DataFrame:
    """
    Quantidade de escolas e valor total por tipo de escola.

    Args:
        registros: Registros no formato RegistroConsumoPolars
        tipos: Tipos considerados, na ordem de exibição (padrão em parametros.yaml)
        mes: Filtro de mês opcional

    Returns:
        DataFrame com tipo_escola, quantidade_escolas, valor_total e
        percentual (inteiro, sobre o total dos tipos considerados).
        Tipos sem escolas são omitidos.
    """
    if tipos is None:
        tipos = carregar_parametros()["tipos_escola"]

    escolas = (
        agregar_por(registros.lazy().filter(expr_filtrar_mes(mes)), "nome_escola")
        .with_columns(expr_tipo_escola().alias("tipo_escola"))
        .filter(pl.col("tipo_escola").is_in(list(tipos)))
    )
    total = escolas["valor_total"].sum()

    por_tipo = escolas.group_by("tipo_escola").agg([
        pl.len().cast(pl.Int64).alias("quantidade_escolas"),
        pl.col("valor_total").sum(),
    ])

    return (
        pl.DataFrame({"tipo_escola": list(tipos)}, schema={"tipo_escola": pl.Utf8})
        .with_row_index("_ordem")
        .join(por_tipo, on="tipo_escola", how="inner")
        .sort("_ordem")
        .drop("_ordem")
        .with_columns(
            (expr_arredondar(pl.col("valor_total") / total * 100, 0) if total > 0 else pl.lit(0.0))
            .alias("percentual")
        )
    )


# =============================================================================
# VENCIMENTOS
# =============================================================================

def expr_prioridade_vencimento(col: str = "dias_restantes") -> pl.Expr:
    """Prioridade: alta até 2 dias, media até 5 dias, baixa depois."""
    return (
        pl.when(pl.col(col) <= 2).then(pl.lit("alta"))
        .when(pl.col(col) <= 5).then(pl.lit("media"))
        .otherwise(pl.lit("baixa"))
    )


def vencimentos_proximos(
    registros: Registros,
    hoje: Optional[date] = None,
    janela_dias: Optional[int] = None,
    limite: Optional[int] = None,
) -> pl.DataFrame:
    """
    Faturas com vencimento entre hoje e hoje + janela_dias (inclusive).

    Args:
        registros: Registros no formato RegistroConsumoPolars
        hoje: Data de referência (padrão: date.today())
        janela_dias: Tamanho da janela em dias (padrão em parametros.yaml)
        limite: Quantidade máxima de faturas (padrão em parametros.yaml)

    Returns:
        DataFrame com nome_escola, cadastro, mes_ano_referencia,
        data_vencimento, valor_total, dias_restantes e prioridade, do
        vencimento mais próximo ao mais distante
    """
    parametros = carregar_parametros()["vencimentos"]
    hoje = hoje or date.today()
    janela_dias = parametros["janela_dias"] if janela_dias is None else janela_dias
    limite = parametros["limite"] if limite is None else limite

    return (
        registros.lazy()
        .filter(pl.col("data_vencimento").is_not_null())
        .with_columns(
            (pl.col("data_vencimento") - pl.lit(hoje)).dt.total_days().cast(pl.Int64).alias("dias_restantes")
        )
        .filter(pl.col("dias_restantes").is_between(0, janela_dias))
        .sort("data_vencimento", maintain_order=True)
        .head(limite)
        .select([
            "nome_escola",
            "cadastro",
            "mes_ano_referencia",
            "data_vencimento",
            (expr_valor_numerico("valor_gasto") + expr_valor_numerico("valor_servicos")).alias("valor_total"),
            "dias_restantes",
            expr_prioridade_vencimento().alias("prioridade"),
        ])
        .collect()
    )


# =============================================================================
# EFICIÊNCIA
# =============================================================================

@dataclass(frozen=True)
class MetricasEficiencia:
    """Eficiência geral e rankings de escolas."""

    eficiencia_media: float
    mais_eficientes: pl.DataFrame
    menos_eficientes: pl.DataFrame


def metricas_eficiencia(registros: Registros, n: Optional[int] = None) -> MetricasEficiencia:
    """
    Métricas de eficiência (consumo por R$ 1.000 gastos).

    Args:
        registros: Registros no formato RegistroConsumoPolars
        n: Tamanho dos rankings (padrão em parametros.yaml)

    Returns:
        MetricasEficiencia com a eficiência geral, as n escolas mais
        eficientes (da mais eficiente para a menos) e as n menos eficientes
        (da menos eficiente para a mais). Os rankings trazem a coluna
        custo_por_unidade (valor_total / consumo_total, 0 sem consumo).
    """
    if n is None:
        n = carregar_parametros()["rankings"]["eficiencia"]

    escolas = agregar_por(registros, "nome_escola").with_columns(
        pl.when(pl.col("consumo_total") > 0)
        .then(pl.col("valor_total") / pl.col("consumo_total"))
        .otherwise(0.0)
        .alias("custo_por_unidade")
    )

    consumo_total = escolas["consumo_total"].sum()
    valor_total = escolas["valor_total"].sum()
    eficiencia_media = consumo_total / valor_total * 1000 if valor_total > 0 else 0.0

    ranking = classificar(escolas, "indice_eficiencia")
    return MetricasEficiencia(
        eficiencia_media=eficiencia_media,
        mais_eficientes=ranking.head(n),
        menos_eficientes=ranking.tail(n).reverse(),
    )
