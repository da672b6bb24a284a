"""
Pipelines de agregação do utilicore.

Resumos por chave, resumos sazonais e indicadores do painel, todos
calculados com expressões Polars a partir dos registros de consumo.
"""

from .agregacao import (
    agregar_por,
    agregar_por_escola,
    arredondar,
    arredondar_para_exibicao,
    classificar,
    primeiros,
    ultimos,
    comparativo_escolas,
)
from .sazonalidade import (
    DestaquesSazonais,
    resumo_sazonal,
    resumo_estacoes_meteorologicas,
    destaques_sazonais,
)
from .indicadores import (
    MetricasEficiencia,
    totais_mensais,
    tendencia_custos,
    alertas_variacao,
    distribuicao_por_tipo_escola,
    vencimentos_proximos,
    metricas_eficiencia,
)

__all__ = [
    "agregar_por",
    "agregar_por_escola",
    "arredondar",
    "arredondar_para_exibicao",
    "classificar",
    "primeiros",
    "ultimos",
    "comparativo_escolas",
    "DestaquesSazonais",
    "resumo_sazonal",
    "resumo_estacoes_meteorologicas",
    "destaques_sazonais",
    "MetricasEficiencia",
    "totais_mensais",
    "tendencia_custos",
    "alertas_variacao",
    "distribuicao_por_tipo_escola",
    "vencimentos_proximos",
    "metricas_eficiencia",
]
