"""
Resumos sazonais do consumo.

Duas leituras das estações:
- astronômicas: intervalos exatos da tabela estacoes.csv (Verão 2024/2025,
  Outono 2025...), com os registros classificados pela data de referência
- meteorológicas: meses fixos (dezembro a fevereiro = Verão...), sem ano
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Union

import polars as pl

from ..models.estacao import Estacao
from ..periodos import (
    ESTACOES_METEOROLOGICAS,
    classificar_estacoes,
    expr_data_referencia,
    expr_estacao_meteorologica,
)
from .agregacao import Registros, agregar_por, arredondar

logger = logging.getLogger(__name__)


def resumo_sazonal(
    registros: Registros,
    estacoes: Union[None, pl.LazyFrame, pl.DataFrame, Sequence[Estacao]] = None,
) -> pl.DataFrame:
    """
    Resumo por estação astronômica.

    Apenas estações com registros aparecem, em ordem cronológica. Registros
    com mês de referência inválido ou fora das estações definidas são
    ignorados.

    Args:
        registros: Registros no formato RegistroConsumoPolars
        estacoes: Tabela de estações (opcional, carregada se None)

    Returns:
        Colunas do resumo (chave = nome da estação) mais estacao_chave,
        inicio, fim, cor, icone

    Example:
        >>> resumo_sazonal(registros).select("chave", "consumo_medio")
    """
    classificados = classificar_estacoes(registros.lazy(), estacoes)

    resumo = agregar_por(
        classificados,
        "estacao",
        extras=[
            pl.col("estacao_chave").first(),
            pl.col("estacao_inicio").first().alias("inicio"),
            pl.col("estacao_fim").first().alias("fim"),
            pl.col("cor").first(),
            pl.col("icone").first(),
        ],
    )
    total = registros.lazy().select(pl.len()).collect().item()
    descartados = total - resumo["quantidade_registros"].sum()
    if descartados:
        logger.debug(f"{descartados} registros fora das estações definidas ou com mês inválido")

    return resumo.sort("inicio", maintain_order=True)


def resumo_estacoes_meteorologicas(registros: Registros) -> pl.DataFrame:
    """
    Resumo por estação meteorológica (Verão, Outono, Inverno, Primavera).

    Os meses de anos diferentes se somam na mesma estação. Estações sem
    registros são omitidas.
    """
    ordem = {nome: indice for indice, nome in enumerate(ESTACOES_METEOROLOGICAS)}

    classificados = (
        registros.lazy()
        .with_columns(expr_data_referencia().alias("data_referencia"))
        .filter(pl.col("data_referencia").is_not_null())
        .with_columns(expr_estacao_meteorologica().alias("estacao"))
    )

    return (
        agregar_por(classificados, "estacao")
        .with_columns(pl.col("chave").replace_strict(ordem, return_dtype=pl.Int64).alias("_ordem"))
        .sort("_ordem")
        .drop("_ordem")
    )


@dataclass(frozen=True)
class DestaquesSazonais:
    """Estações de maior e menor consumo médio."""

    maior: str
    maior_consumo_medio: float
    menor: str
    menor_consumo_medio: float
    diferenca_percentual: float


def destaques_sazonais(resumo: pl.DataFrame) -> Optional[DestaquesSazonais]:
    """
    Destaques de um resumo sazonal.

    Em caso de empate, vale a primeira estação do resumo. A diferença
    percentual é arredondada para inteiro e vale 0 quando o menor consumo
    médio é 0.

    Returns:
        DestaquesSazonais, ou None para um resumo vazio

    Example:
        >>> destaques_sazonais(resumo_sazonal(registros)).maior
        'Verão 2024/2025'
    """
    if resumo.is_empty():
        return None

    maior = resumo.row(resumo["consumo_medio"].arg_max(), named=True)
    menor = resumo.row(resumo["consumo_medio"].arg_min(), named=True)

    if menor["consumo_medio"] > 0:
        diferenca = arredondar(
            (maior["consumo_medio"] - menor["consumo_medio"]) / menor["consumo_medio"] * 100
        )
    else:
        diferenca = 0.0

    return DestaquesSazonais(
        maior=maior["chave"],
        maior_consumo_medio=maior["consumo_medio"],
        menor=menor["chave"],
        menor_consumo_medio=menor["consumo_medio"],
        diferenca_percentual=diferenca,
    )
