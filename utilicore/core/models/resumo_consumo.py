"""
Modelo Pandera para as linhas de resumo produzidas pelos agregadores.

Uma linha resume todos os registros de uma mesma chave de agrupamento
(escola, empresa, estação). As linhas são recalculadas a cada consulta e
não são persistidas.
"""

import polars as pl
import pandera.polars as pa


class ResumoConsumo(pa.DataFrameModel):
    """
    Schema das linhas de resumo.

    Médias e índice de eficiência valem 0 quando o divisor é nulo.
    """

    chave: pl.Utf8 = pa.Field(nullable=True, description="Valor da chave de agrupamento")

    # Totais
    consumo_total: pl.Float64 = pa.Field(description="Soma dos consumos (m³, kWh, MB)")
    valor_total: pl.Float64 = pa.Field(description="Soma dos valores gastos (R$)")
    valor_servicos_total: pl.Float64 = pa.Field(description="Soma dos valores de serviços (R$)")

    # Médias
    consumo_medio: pl.Float64 = pa.Field()
    valor_medio: pl.Float64 = pa.Field()

    quantidade_registros: pl.Int64 = pa.Field(gt=0)
    indice_eficiencia: pl.Float64 = pa.Field(
        description="Consumo por R$ 1.000 gastos = consumo_medio / valor_medio * 1000"
    )

    class Config:
        strict = False
        coerce = True


COLUNAS_RESUMO = [
    "chave",
    "consumo_total",
    "valor_total",
    "valor_servicos_total",
    "consumo_medio",
    "valor_medio",
    "quantidade_registros",
    "indice_eficiencia",
]
