"""
Modelos de dados do utilicore.

Dataclasses imutáveis para os registros e estações, e modelos Pandera
para validar os DataFrames Polars que circulam entre os pipelines.
"""

from .registro_consumo import (
    SCHEMA_REGISTRO,
    RegistroConsumo,
    RegistroConsumoPolars,
    TipoUtilidade,
    linhas_para_lazyframe,
    registros_para_lazyframe,
    como_data,
    como_float,
)
from .resumo_consumo import COLUNAS_RESUMO, ResumoConsumo
from .estacao import Estacao, EstacaoPolars

__all__ = [
    "SCHEMA_REGISTRO",
    "RegistroConsumo",
    "RegistroConsumoPolars",
    "TipoUtilidade",
    "linhas_para_lazyframe",
    "registros_para_lazyframe",
    "como_data",
    "como_float",
    "COLUNAS_RESUMO",
    "ResumoConsumo",
    "Estacao",
    "EstacaoPolars",
]
