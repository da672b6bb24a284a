"""
Carregadores de dados do utilicore.

Leitura das tabelas de utilidades numa base DuckDB, com validação Pandera.
"""

from .duckdb_loader import (
    # API fluida
    agua,
    energia,
    telefonia_fixa,
    telefonia_movel,
    consulta,
    QueryBuilder,
    # Carregamento tolerante a falhas
    carregar_registros,
    carregar_consolidado,
    duckdb_connection,
)

__all__ = [
    "agua",
    "energia",
    "telefonia_fixa",
    "telefonia_movel",
    "consulta",
    "QueryBuilder",
    "carregar_registros",
    "carregar_consolidado",
    "duckdb_connection",
]
