"""
Carregador DuckDB das tabelas de utilidades.

Lê as tabelas school_records, energy_records, fixed_line_records e
mobile_records e as normaliza no formato RegistroConsumoPolars, com
validação Pandera.
"""

import logging
import re
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import duckdb
import polars as pl
from pandera.errors import SchemaError, SchemaErrors

from ...config import carregar_parametros
from ..models.registro_consumo import (
    SCHEMA_REGISTRO,
    RegistroConsumoPolars,
    TipoUtilidade,
    registros_para_lazyframe,
)

logger = logging.getLogger(__name__)


# Consultas SQL de base para cada tabela, já no formato dos registros
BASE_QUERY_AGUA = """
SELECT
    'agua' as tipo,
    nome_escola,
    CAST(cadastro AS VARCHAR) as cadastro,
    mes_ano_referencia,
    COALESCE(TRY_CAST(consumo_m3 AS DOUBLE), 0) as consumo,
    COALESCE(TRY_CAST(valor_gasto AS DOUBLE), 0) as valor_gasto,
    COALESCE(TRY_CAST(valor_servicos AS DOUBLE), 0) as valor_servicos,
    TRY_CAST(data_vencimento AS DATE) as data_vencimento
FROM school_records
"""

BASE_QUERY_ENERGIA = """
SELECT
    'energia' as tipo,
    nome_escola,
    CAST(cadastro_cliente AS VARCHAR) as cadastro,
    mes_ano_referencia,
    COALESCE(TRY_CAST(consumo_kwh AS DOUBLE), 0) as consumo,
    COALESCE(TRY_CAST(valor_gasto AS DOUBLE), 0) as valor_gasto,
    COALESCE(TRY_CAST(valor_servicos AS DOUBLE), 0) as valor_servicos,
    TRY_CAST(data_vencimento AS DATE) as data_vencimento
FROM energy_records
"""

BASE_QUERY_TELEFONIA_FIXA = """
SELECT
    'telefonia_fixa' as tipo,
    nome_escola,
    CAST(cadastro_cliente AS VARCHAR) as cadastro,
    mes_ano_referencia,
    CAST(0 AS DOUBLE) as consumo,
    COALESCE(TRY_CAST(valor_gasto AS DOUBLE), 0) as valor_gasto,
    COALESCE(TRY_CAST(valor_servicos AS DOUBLE), 0) as valor_servicos,
    TRY_CAST(data_vencimento AS DATE) as data_vencimento
FROM fixed_line_records
"""

BASE_QUERY_TELEFONIA_MOVEL = """
SELECT
    'telefonia_movel' as tipo,
    nome_escola,
    CAST(cadastro_cliente AS VARCHAR) as cadastro,
    mes_ano_referencia,
    COALESCE(TRY_CAST(consumo_mb AS DOUBLE), 0) as consumo,
    COALESCE(TRY_CAST(valor_gasto AS DOUBLE), 0) as valor_gasto,
    COALESCE(TRY_CAST(valor_servicos AS DOUBLE), 0) as valor_servicos,
    TRY_CAST(data_vencimento AS DATE) as data_vencimento
FROM mobile_records
"""

BASE_QUERIES = {
    TipoUtilidade.AGUA: BASE_QUERY_AGUA,
    TipoUtilidade.ENERGIA: BASE_QUERY_ENERGIA,
    TipoUtilidade.TELEFONIA_FIXA: BASE_QUERY_TELEFONIA_FIXA,
    TipoUtilidade.TELEFONIA_MOVEL: BASE_QUERY_TELEFONIA_MOVEL,
}

_OPERADOR = re.compile(r"^\s*(>=|<=|<>|!=|>|<|=)\s*(.*?)\s*$")


def caminho_padrao() -> Path:
    """Base DuckDB indicada em parametros.yaml."""
    return Path(carregar_parametros()["duckdb"]["caminho"])


@contextmanager
def duckdb_connection(database_path: Union[str, Path]):
    """
    Context manager para conexões DuckDB em modo leitura.

    Args:
        database_path: Caminho da base DuckDB

    Yields:
        duckdb.DuckDBPyConnection: Conexão ativa
    """
    conn = None
    try:
        conn = duckdb.connect(str(database_path), read_only=True)
        yield conn
    finally:
        if conn:
            conn.close()


def _converter_valor(column: str, valor: str) -> Any:
    """Converte o valor textual de uma condição para o tipo da coluna."""
    tipo = SCHEMA_REGISTRO[column]
    if tipo == pl.Float64:
        return float(valor)
    if tipo == pl.Date:
        return date.fromisoformat(valor)
    return valor


def _build_where_clauses(filters: Optional[Dict[str, Any]]) -> Tuple[List[str], List[Any]]:
    """
    Constrói as cláusulas WHERE e os parâmetros a partir dos filtros.

    Args:
        filters: Dicionário {coluna: condição}. A condição pode ser uma lista
            (IN), um texto com operador (">= '2025-01-01'") ou um valor (=).

    Returns:
        (cláusulas, parâmetros)

    Raises:
        ValueError: se a coluna não pertencer ao formato dos registros

    Examples:
        >>> _build_where_clauses({"nome_escola": ["EMEF A", "EMEI B"]})
        (['nome_escola IN (?, ?)'], ['EMEF A', 'EMEI B'])

        >>> _build_where_clauses({"valor_gasto": "> 1000"})
        (['valor_gasto > ?'], [1000.0])
    """
    where_clauses = []
    params = []
    for column, condition in (filters or {}).items():
        if column not in SCHEMA_REGISTRO:
            raise ValueError(f"Coluna de filtro desconhecida: {column}")

        operador = _OPERADOR.match(condition) if isinstance(condition, str) else None
        if isinstance(condition, (list, tuple)):
            # Lista de valores
            marcadores = ", ".join("?" for _ in condition)
            where_clauses.append(f"{column} IN ({marcadores})")
            params.extend(condition)
        elif operador:
            # Condição com operador
            where_clauses.append(f"{column} {operador.group(1)} ?")
            params.append(_converter_valor(column, operador.group(2).strip("'\"")))
        else:
            # Igualdade simples
            where_clauses.append(f"{column} = ?")
            params.append(condition)
    return where_clauses, params


def _transform_registros(lazy_df: pl.LazyFrame) -> pl.LazyFrame:
    """Tipos finais do formato RegistroConsumoPolars."""
    return lazy_df.select([pl.col(nome).cast(tipo) for nome, tipo in SCHEMA_REGISTRO.items()])


class QueryBuilder:
    """
    Builder funcional para consultas DuckDB sobre uma tabela de utilidade.

    - Imutável: cada método retorna uma nova instância
    - Métodos encadeáveis
    - Execução adiada até exec() ou lazy()

    Example:
        >>> df = agua().filter({"mes_ano_referencia": ["Janeiro/2025"]}).limit(100).exec()
        >>> lazy_df = energia("utilicore.duckdb").filter({"valor_gasto": "> 1000"}).lazy()
    """

    def __init__(self,
                 base_query: str,
                 transform_func: Callable[[pl.LazyFrame], pl.LazyFrame] = _transform_registros,
                 validator_class: type = RegistroConsumoPolars,
                 database_path: Union[str, Path] = None,
                 filters: Optional[Dict[str, Any]] = None,
                 limit_value: Optional[int] = None,
                 validar: bool = True):
        self._base_query = base_query
        self._transform_func = transform_func
        self._validator_class = validator_class
        self._database_path = database_path
        self._filters = filters or {}
        self._limit_value = limit_value
        self._validar = validar

    def _copy(self, **changes) -> 'QueryBuilder':
        state = {
            "base_query": self._base_query,
            "transform_func": self._transform_func,
            "validator_class": self._validator_class,
            "database_path": self._database_path,
            "filters": self._filters,
            "limit_value": self._limit_value,
            "validar": self._validar,
        }
        state.update(changes)
        return QueryBuilder(**state)

    def filter(self, filters: Dict[str, Any]) -> 'QueryBuilder':
        """
        Adiciona filtros à consulta.

        Example:
            >>> query.filter({"nome_escola": ["EMEF A"], "valor_gasto": ">= 100"})
        """
        return self._copy(filters={**self._filters, **filters})

    def limit(self, count: int) -> 'QueryBuilder':
        """Limita o número de linhas retornadas."""
        return self._copy(limit_value=count)

    def validate(self, enable: bool = True) -> 'QueryBuilder':
        """Ativa ou desativa a validação Pandera."""
        return self._copy(validar=enable)

    def _build_final_query(self) -> Tuple[str, List[Any]]:
        """
        Consulta SQL final com filtros e limite.

        Returns:
            (consulta, parâmetros)
        """
        query = self._base_query
        where_clauses, params = _build_where_clauses(self._filters)

        if where_clauses:
            # Os filtros valem sobre as colunas já normalizadas
            query = f"SELECT * FROM ({query}) AS registros WHERE " + " AND ".join(where_clauses)

        if self._limit_value is not None:
            query += f" LIMIT {int(self._limit_value)}"

        return query, params

    def lazy(self) -> pl.LazyFrame:
        """
        Executa a consulta e retorna um LazyFrame Polars.

        Raises:
            FileNotFoundError: se a base DuckDB não existir
        """
        database_path = Path(self._database_path) if self._database_path else caminho_padrao()

        if not database_path.exists():
            raise FileNotFoundError(f"Base DuckDB não encontrada: {database_path}")

        final_query, params = self._build_final_query()

        with duckdb_connection(database_path) as conn:
            lazy_frame = conn.execute(final_query, params).pl().lazy()

        lazy_frame = self._transform_func(lazy_frame)

        # Validação sobre uma amostra
        if self._validar and self._validator_class is not None:
            sample_df = lazy_frame.limit(100).collect()
            self._validator_class.validate(sample_df)

        return lazy_frame

    def exec(self) -> pl.DataFrame:
        """Executa a consulta e retorna um DataFrame Polars."""
        return self.lazy().collect()


# ============================================================
# API fluida - funções factory
# ============================================================

def consulta(tipo: TipoUtilidade, database_path: Union[str, Path] = None) -> QueryBuilder:
    """
    QueryBuilder para a tabela de um tipo de utilidade.

    Raises:
        ValueError: para um tipo de utilidade desconhecido
    """
    return QueryBuilder(base_query=BASE_QUERIES[TipoUtilidade(tipo)], database_path=database_path)


def agua(database_path: Union[str, Path] = None) -> QueryBuilder:
    """
    QueryBuilder para as faturas de água (school_records).

    Example:
        >>> df = agua().filter({"nome_escola": "EMEF A"}).exec()
    """
    return consulta(TipoUtilidade.AGUA, database_path)


def energia(database_path: Union[str, Path] = None) -> QueryBuilder:
    """QueryBuilder para as faturas de energia (energy_records)."""
    return consulta(TipoUtilidade.ENERGIA, database_path)


def telefonia_fixa(database_path: Union[str, Path] = None) -> QueryBuilder:
    """QueryBuilder para as faturas de telefonia fixa (fixed_line_records); consumo sempre 0."""
    return consulta(TipoUtilidade.TELEFONIA_FIXA, database_path)


def telefonia_movel(database_path: Union[str, Path] = None) -> QueryBuilder:
    """QueryBuilder para as faturas de telefonia móvel (mobile_records)."""
    return consulta(TipoUtilidade.TELEFONIA_MOVEL, database_path)


# ============================================================
# Carregamento tolerante a falhas
# ============================================================

def carregar_registros(
    tipo: TipoUtilidade,
    database_path: Union[str, Path] = None,
    filters: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    validar: bool = True
) -> pl.LazyFrame:
    """
    Carrega os registros de um tipo de utilidade.

    Uma base ausente, uma consulta com erro ou dados inválidos resultam em
    um LazyFrame vazio (com o schema dos registros) e um erro no log: o
    painel exibe o estado "sem dados" em vez de falhar.

    Args:
        tipo: Tipo de utilidade
        database_path: Caminho da base DuckDB (padrão em parametros.yaml)
        filters: Filtros opcionais (ver QueryBuilder.filter)
        limit: Limite de linhas
        validar: Ativa a validação Pandera

    Returns:
        LazyFrame no formato RegistroConsumoPolars
    """
    query = consulta(tipo, database_path).validate(validar)
    if filters:
        query = query.filter(filters)
    if limit is not None:
        query = query.limit(limit)

    try:
        return query.exec().lazy()
    except FileNotFoundError as e:
        logger.error(f"Registros de {TipoUtilidade(tipo).value} indisponíveis: {e}")
    except duckdb.Error as e:
        logger.error(f"Erro na consulta de {TipoUtilidade(tipo).value}: {e}")
    except (SchemaError, SchemaErrors) as e:
        logger.error(f"Registros de {TipoUtilidade(tipo).value} inválidos: {e}")
    return registros_para_lazyframe([])


def carregar_consolidado(
    tipos: Optional[List[TipoUtilidade]] = None,
    database_path: Union[str, Path] = None,
    validar: bool = True
) -> pl.LazyFrame:
    """
    Registros de vários tipos de utilidade num único LazyFrame.

    Cada tipo é carregado com carregar_registros; um tipo indisponível
    contribui com zero linhas.
    """
    tipos = tipos or list(TipoUtilidade)
    return pl.concat(
        [carregar_registros(tipo, database_path, validar=validar) for tipo in tipos],
        how="vertical",
    )
