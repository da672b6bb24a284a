"""
Estações do ano usadas nas análises sazonais.

As estações astronômicas são intervalos semiabertos [inicio, fim) em horário
de Brasília, carregados da tabela de configuração estacoes.csv.
"""

from dataclasses import dataclass
from datetime import datetime

import polars as pl
import pandera.polars as pa
from pandera.engines.polars_engine import DateTime


@dataclass(frozen=True)
class Estacao:
    """Uma estação astronômica com seus rótulos de exibição."""

    ano_referencia: int
    chave: str
    nome: str
    inicio: datetime
    fim: datetime
    cor: str
    icone: str

    def contem(self, instante: datetime) -> bool:
        return self.inicio <= instante < self.fim


class EstacaoPolars(pa.DataFrameModel):
    """
    📌 Modelo Pandera da tabela de estações.

    Cada linha precisa terminar depois de começar.
    """

    ano_referencia: pl.Int64 = pa.Field()
    chave: pl.Utf8 = pa.Field(unique=True)
    nome: pl.Utf8 = pa.Field()
    inicio: DateTime = pa.Field(nullable=False, dtype_kwargs={"time_unit": "us"})
    fim: DateTime = pa.Field(nullable=False, dtype_kwargs={"time_unit": "us"})
    cor: pl.Utf8 = pa.Field(nullable=True)
    icone: pl.Utf8 = pa.Field(nullable=True)

    @pa.dataframe_check
    def verificar_intervalos(cls, data) -> pl.LazyFrame:
        """Verifica que inicio < fim em todas as linhas."""
        return data.lazyframe.select((pl.col("inicio") < pl.col("fim")).alias("intervalo_valido"))

    class Config:
        strict = False
        coerce = True
